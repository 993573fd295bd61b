"""
Durable store interface consumed by the behavioral engine.

Write methods report failure by returning False; read methods return empty
results when the backend cannot answer. Implementations log their own errors.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from .models import (
    AnomalyDetection,
    AnomalyType,
    BehavioralEvent,
    BehavioralInsight,
    BehavioralProfile,
    EntityType,
    Severity,
)


class BehavioralStore(ABC):
    """Persistence collaborator for profiles, events, anomalies and insights"""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create backing tables if needed

        Raises:
            Exception: If the schema cannot be created
        """

    @abstractmethod
    def check_health(self) -> bool:
        pass

    # Profiles

    @abstractmethod
    def upsert_profile(self, profile: BehavioralProfile) -> bool:
        pass

    @abstractmethod
    def get_profile(self, entity_id: str, entity_type: EntityType) -> Optional[BehavioralProfile]:
        """The stored profile, or None if there is none. Read failures raise PersistenceError"""

    @abstractmethod
    def list_profiles(self) -> list[BehavioralProfile]:
        """Every stored profile. Read failures raise PersistenceError"""

    # Events

    @abstractmethod
    def append_event(self, event: BehavioralEvent) -> bool:
        pass

    @abstractmethod
    def mark_event_processed(self, event_id: str) -> bool:
        pass

    @abstractmethod
    def list_events(
        self, entity_id: str, entity_type: EntityType, since: datetime
    ) -> list[BehavioralEvent]:
        """Events of one entity at or after `since`, oldest first"""

    @abstractmethod
    def list_unprocessed_events(self) -> list[BehavioralEvent]:
        """Events not yet folded into a profile, oldest first; failures raise PersistenceError"""

    # Anomalies and insights

    @abstractmethod
    def insert_anomaly(self, anomaly: AnomalyDetection) -> bool:
        pass

    @abstractmethod
    def list_anomalies(
        self,
        entity_id: Optional[str] = None,
        anomaly_type: Optional[AnomalyType] = None,
        severity: Optional[Severity] = None,
        limit: int = 100,
    ) -> list[AnomalyDetection]:
        """Most recent anomalies first"""

    @abstractmethod
    def insert_insight(self, insight: BehavioralInsight) -> bool:
        pass

    # Aggregates for statistics reporting

    @abstractmethod
    def profile_stats(self) -> list[dict[str, Any]]:
        """Rows of entity_type, status, count, avg_risk_score, avg_confidence"""

    @abstractmethod
    def anomaly_stats(self, since: datetime) -> list[dict[str, Any]]:
        """Rows of anomaly_type, severity, count, avg_confidence"""

    @abstractmethod
    def event_stats(self, since: datetime) -> dict[str, Any]:
        """total_events, processed_events, avg_anomaly_score"""

    @abstractmethod
    def close(self) -> None:
        pass
