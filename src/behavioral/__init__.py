"""
Behavioral Anomaly Detection Engine

Learns a statistical profile per tracked entity (user, system, application,
process) from its activity events and flags deviations from the learned
baseline as anomalies.

Architecture:
- Ingestion: events are persisted, queued, and folded into profiles by a drain
- Profiles: exponential moving averages per feature, frozen baselines while learning
- Pluggable Detectors: statistical, behavioral and extension strategies via a registry
- Analytics: read-side summaries of a user's stored history

Usage:
    # Run the engine with Kafka ingestion
    python -m src.behavioral.run
"""

from .errors import BehavioralAnalysisError
from .models import (
    AnomalyDetection,
    BehavioralConfig,
    BehavioralEvent,
    BehavioralProfile,
    EntityType,
    ProfileStatus,
)
from .service import BehavioralAnalysisService

__all__ = [
    "AnomalyDetection",
    "BehavioralAnalysisError",
    "BehavioralAnalysisService",
    "BehavioralConfig",
    "BehavioralEvent",
    "BehavioralProfile",
    "EntityType",
    "ProfileStatus",
]
