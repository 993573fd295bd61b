"""
Behavioral risk-score detector.
"""

from typing import Any, Optional

from ..models import (
    AnomalyDetection,
    AnomalyType,
    BehavioralConfig,
    BehavioralEvent,
    BehavioralProfile,
    Severity,
)
from .base import AnomalyDetector


class BehavioralRiskDetector(AnomalyDetector):
    """Raises one high-severity finding when a profile's risk score is too high"""

    def __init__(self, config: BehavioralConfig):
        self.risk_threshold = config.behavioral_risk_threshold

    @property
    def name(self) -> str:
        return "behavioral"

    @property
    def anomaly_type(self) -> AnomalyType:
        return AnomalyType.BEHAVIORAL

    def get_config(self) -> dict[str, Any]:
        return {"risk_threshold": self.risk_threshold}

    def detect(
        self, profile: BehavioralProfile, event: Optional[BehavioralEvent] = None
    ) -> list[AnomalyDetection]:
        if profile.risk_score <= self.risk_threshold:
            return []

        return [
            AnomalyDetection(
                entity_id=profile.entity_id,
                anomaly_type=AnomalyType.BEHAVIORAL,
                severity=Severity.HIGH,
                confidence=profile.confidence,
                description=(
                    f"Behavioral risk score {profile.risk_score:.2f} exceeds normal threshold"
                ),
                affected_metrics=list(profile.current_metrics),
                detection_method="behavioral-scoring",
            )
        ]
