"""
Anomaly detector registry and factory.
"""

from ..models import BehavioralConfig
from .base import AnomalyDetector
from .behavioral import BehavioralRiskDetector
from .extension import ContextualDetector, PatternDetector, TemporalDetector
from .statistical import EventStatisticalDetector, ProfileStatisticalDetector

# Registry of available detectors
DETECTOR_REGISTRY = {
    "event_statistical": EventStatisticalDetector,
    "statistical": ProfileStatisticalDetector,
    "pattern": PatternDetector,
    "behavioral": BehavioralRiskDetector,
    "temporal": TemporalDetector,
    "contextual": ContextualDetector,
}


def get_detector(name: str, config: BehavioralConfig) -> AnomalyDetector:
    """Factory to create an anomaly detector

    Args:
        name: Registry name of the detector (e.g., 'statistical')
        config: Engine configuration

    Returns:
        Instance of the detector

    Raises:
        ValueError: If name is not registered
    """
    if name not in DETECTOR_REGISTRY:
        available = ", ".join(DETECTOR_REGISTRY.keys())
        raise ValueError(f"Unknown detector '{name}'. Available detectors: {available}")

    return DETECTOR_REGISTRY[name](config)


def build_detectors(names: list[str], config: BehavioralConfig) -> list[AnomalyDetector]:
    """Instantiate an ordered detector set"""
    return [get_detector(name, config) for name in names]


def list_detectors() -> list[str]:
    """List all available detectors"""
    return list(DETECTOR_REGISTRY.keys())


__all__ = [
    "AnomalyDetector",
    "BehavioralRiskDetector",
    "ContextualDetector",
    "EventStatisticalDetector",
    "PatternDetector",
    "ProfileStatisticalDetector",
    "TemporalDetector",
    "build_detectors",
    "get_detector",
    "list_detectors",
]
