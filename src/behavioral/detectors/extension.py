"""
Detector extension points.

Pattern, temporal and contextual detection are registered so the detector
set keeps its full shape; they currently report no findings.
"""

from typing import Any, Optional

from ..models import (
    AnomalyDetection,
    AnomalyType,
    BehavioralConfig,
    BehavioralEvent,
    BehavioralProfile,
)
from .base import AnomalyDetector


class _NoFindingsDetector(AnomalyDetector):
    _name: str
    _anomaly_type: AnomalyType

    def __init__(self, threshold: float):
        self.threshold = threshold

    @property
    def name(self) -> str:
        return self._name

    @property
    def anomaly_type(self) -> AnomalyType:
        return self._anomaly_type

    def get_config(self) -> dict[str, Any]:
        return {"threshold": self.threshold}

    def detect(
        self, profile: BehavioralProfile, event: Optional[BehavioralEvent] = None
    ) -> list[AnomalyDetection]:
        return []


class PatternDetector(_NoFindingsDetector):
    """Event-sequence similarity"""

    _name = "pattern"
    _anomaly_type = AnomalyType.PATTERN

    def __init__(self, config: BehavioralConfig):
        super().__init__(config.pattern_threshold)


class TemporalDetector(_NoFindingsDetector):
    """Time-of-activity deviations"""

    _name = "temporal"
    _anomaly_type = AnomalyType.TEMPORAL

    def __init__(self, config: BehavioralConfig):
        super().__init__(config.temporal_threshold)


class ContextualDetector(_NoFindingsDetector):
    """Deviations relative to the surrounding context of an activity"""

    _name = "contextual"
    _anomaly_type = AnomalyType.CONTEXTUAL

    def __init__(self, config: BehavioralConfig):
        super().__init__(config.contextual_threshold)
