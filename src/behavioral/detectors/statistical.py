"""
Z-score detectors against frozen baselines.

Two variants share the same scoring rules:
- EventStatisticalDetector scores each feature of an incoming event against
  the frozen baseline of that metric.
- ProfileStatisticalDetector scans the live anomaly score of every current
  metric that has a frozen baseline.

Severity: z > 4 critical, > 3 high, > 2 medium, else low.
Confidence: min(0.99, z / 5).
"""

from typing import Any, Optional

import structlog

from ..features import extract_features
from ..models import (
    AnomalyDetection,
    AnomalyType,
    BehavioralConfig,
    BehavioralEvent,
    BehavioralMetric,
    BehavioralProfile,
)
from .base import AnomalyDetector

logger = structlog.get_logger(__name__)


def z_confidence(z_score: float) -> float:
    return min(0.99, z_score / 5)


class _ZScoreDetector(AnomalyDetector):
    def __init__(self, config: BehavioralConfig):
        self.threshold = config.statistical_threshold
        self.min_data_points = config.min_data_points

    @property
    def anomaly_type(self) -> AnomalyType:
        return AnomalyType.STATISTICAL

    def get_config(self) -> dict[str, Any]:
        return {"threshold": self.threshold, "min_data_points": self.min_data_points}

    def _frozen_baseline(
        self, profile: BehavioralProfile, metric_name: str
    ) -> Optional[BehavioralMetric]:
        baseline = profile.baseline_metrics.get(metric_name)
        if baseline is None or baseline.data_points < self.min_data_points:
            return None
        return baseline


class EventStatisticalDetector(_ZScoreDetector):
    """Scores the features of one event against frozen baselines"""

    @property
    def name(self) -> str:
        return "event_statistical"

    def detect(
        self, profile: BehavioralProfile, event: Optional[BehavioralEvent] = None
    ) -> list[AnomalyDetection]:
        if event is None:
            return []

        anomalies = []
        for metric_name, value in extract_features(event).items():
            baseline = self._frozen_baseline(profile, metric_name)
            if baseline is None:
                continue

            z_score = abs(value - baseline.baseline.mean) / (baseline.baseline.std_dev or 1)
            if z_score <= self.threshold:
                continue

            anomalies.append(
                AnomalyDetection(
                    entity_id=event.entity_id,
                    anomaly_type=AnomalyType.STATISTICAL,
                    severity=AnomalyDetection.calculate_severity(z_score),
                    confidence=z_confidence(z_score),
                    description=(
                        f"{metric_name} value {value:g} deviates significantly from "
                        f"baseline ({baseline.baseline.mean:.2f})"
                    ),
                    affected_metrics=[metric_name],
                    detection_method="z-score",
                    timestamp=event.timestamp,
                )
            )
            logger.debug(
                "Event deviates from baseline",
                entity_id=event.entity_id,
                metric=metric_name,
                z_score=round(z_score, 3),
            )

        return anomalies


class ProfileStatisticalDetector(_ZScoreDetector):
    """Flags current metrics whose live anomaly score exceeds the threshold"""

    @property
    def name(self) -> str:
        return "statistical"

    def detect(
        self, profile: BehavioralProfile, event: Optional[BehavioralEvent] = None
    ) -> list[AnomalyDetection]:
        anomalies = []
        for metric_name, metric in profile.current_metrics.items():
            if self._frozen_baseline(profile, metric_name) is None:
                continue
            if metric.anomaly_score <= self.threshold:
                continue

            anomalies.append(
                AnomalyDetection(
                    entity_id=profile.entity_id,
                    anomaly_type=AnomalyType.STATISTICAL,
                    severity=AnomalyDetection.calculate_severity(metric.anomaly_score),
                    confidence=z_confidence(metric.anomaly_score),
                    description=f"Statistical anomaly detected in {metric_name}",
                    affected_metrics=[metric_name],
                    detection_method="statistical-analysis",
                )
            )

        return anomalies
