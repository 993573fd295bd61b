"""
Base abstract interface for anomaly detectors.

All detectors must inherit from AnomalyDetector and implement:
- detect(): Evaluate a profile (and optionally the event just folded into it)
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ..models import AnomalyDetection, AnomalyType, BehavioralEvent, BehavioralProfile


class AnomalyDetector(ABC):
    """Abstract base class for all anomaly detection strategies

    Detectors are pure: they read the profile and event and return findings
    without mutating either.
    """

    @abstractmethod
    def detect(
        self, profile: BehavioralProfile, event: Optional[BehavioralEvent] = None
    ) -> list[AnomalyDetection]:
        """Evaluate a profile for anomalies

        Args:
            profile: Profile of the entity under evaluation
            event: Event just folded into the profile, when run from the drain

        Returns:
            Zero or more anomaly findings
        """
        pass

    @abstractmethod
    def get_config(self) -> dict[str, Any]:
        """Get the current configuration of this detector"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name of the detector"""
        pass

    @property
    @abstractmethod
    def anomaly_type(self) -> AnomalyType:
        """Family of anomalies this detector raises"""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(config={self.get_config()})"
