"""
Pytest configuration and shared fixtures.
"""

from datetime import UTC, datetime, timedelta
from typing import Any, Optional

import pytest

from src.behavioral.errors import PersistenceError
from src.behavioral.models import (
    AnomalyDetection,
    AnomalyType,
    BehavioralConfig,
    BehavioralEvent,
    BehavioralInsight,
    BehavioralProfile,
    EntityType,
    Severity,
)
from src.behavioral.service import BehavioralAnalysisService
from src.behavioral.store import BehavioralStore


class InMemoryStore(BehavioralStore):
    """Dict-backed store with switches for simulating read and write failures."""

    def __init__(self):
        self.profiles: dict[tuple[str, str], BehavioralProfile] = {}
        self.events: dict[str, BehavioralEvent] = {}
        self.anomalies: list[AnomalyDetection] = []
        self.insights: list[BehavioralInsight] = []
        self.closed = False

        self.fail_schema = False
        self.fail_append = False
        self.fail_mark_processed = False
        self.fail_reads = False
        self.upsert_calls = 0

    def ensure_schema(self) -> None:
        if self.fail_schema:
            raise RuntimeError("database unavailable")

    def check_health(self) -> bool:
        return not self.fail_schema

    def upsert_profile(self, profile: BehavioralProfile) -> bool:
        self.upsert_calls += 1
        self.profiles[(profile.entity_id, profile.entity_type.value)] = profile
        return True

    def get_profile(self, entity_id: str, entity_type: EntityType) -> Optional[BehavioralProfile]:
        if self.fail_reads:
            raise PersistenceError("profile read failed")
        return self.profiles.get((entity_id, entity_type.value))

    def list_profiles(self) -> list[BehavioralProfile]:
        if self.fail_reads:
            raise PersistenceError("profile read failed")
        return list(self.profiles.values())

    def append_event(self, event: BehavioralEvent) -> bool:
        if self.fail_append:
            return False
        self.events[event.id] = BehavioralEvent.from_dict(event.to_dict())
        return True

    def mark_event_processed(self, event_id: str) -> bool:
        if self.fail_mark_processed:
            return False
        self.events[event_id].processed = True
        return True

    def list_events(
        self, entity_id: str, entity_type: EntityType, since: datetime
    ) -> list[BehavioralEvent]:
        events = [
            e
            for e in self.events.values()
            if e.entity_id == entity_id and e.entity_type == entity_type and e.timestamp >= since
        ]
        return sorted(events, key=lambda e: e.timestamp)

    def list_unprocessed_events(self) -> list[BehavioralEvent]:
        if self.fail_reads:
            raise PersistenceError("event read failed")
        return sorted(
            (e for e in self.events.values() if not e.processed), key=lambda e: e.timestamp
        )

    def insert_anomaly(self, anomaly: AnomalyDetection) -> bool:
        self.anomalies.append(anomaly)
        return True

    def list_anomalies(
        self,
        entity_id: Optional[str] = None,
        anomaly_type: Optional[AnomalyType] = None,
        severity: Optional[Severity] = None,
        limit: int = 100,
    ) -> list[AnomalyDetection]:
        found = [
            a
            for a in reversed(self.anomalies)
            if (entity_id is None or a.entity_id == entity_id)
            and (anomaly_type is None or a.anomaly_type == anomaly_type)
            and (severity is None or a.severity == severity)
        ]
        return found[:limit]

    def insert_insight(self, insight: BehavioralInsight) -> bool:
        self.insights.append(insight)
        return True

    def profile_stats(self) -> list[dict[str, Any]]:
        groups: dict[tuple[str, str], list[BehavioralProfile]] = {}
        for profile in self.profiles.values():
            groups.setdefault((profile.entity_type.value, profile.status.value), []).append(
                profile
            )
        return [
            {
                "entity_type": entity_type,
                "status": status,
                "count": len(profiles),
                "avg_risk_score": sum(p.risk_score for p in profiles) / len(profiles),
                "avg_confidence": sum(p.confidence for p in profiles) / len(profiles),
            }
            for (entity_type, status), profiles in groups.items()
        ]

    def anomaly_stats(self, since: datetime) -> list[dict[str, Any]]:
        groups: dict[tuple[str, str], list[AnomalyDetection]] = {}
        for anomaly in self.anomalies:
            if anomaly.timestamp >= since:
                key = (anomaly.anomaly_type.value, anomaly.severity.value)
                groups.setdefault(key, []).append(anomaly)
        return [
            {
                "anomaly_type": anomaly_type,
                "severity": severity,
                "count": len(found),
                "avg_confidence": sum(a.confidence for a in found) / len(found),
            }
            for (anomaly_type, severity), found in groups.items()
        ]

    def event_stats(self, since: datetime) -> dict[str, Any]:
        events = [e for e in self.events.values() if e.timestamp >= since]
        scores = [e.anomaly_score for e in events if e.anomaly_score is not None]
        return {
            "total_events": len(events),
            "processed_events": sum(1 for e in events if e.processed),
            "avg_anomaly_score": sum(scores) / len(scores) if scores else None,
        }

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def config():
    """Engine configuration with default thresholds."""
    return BehavioralConfig()


@pytest.fixture
def store():
    """Empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def service(config, store):
    """Initialized service without the background scheduler."""
    svc = BehavioralAnalysisService(config, store)
    assert svc.initialize(start_scheduler=False)
    yield svc
    svc.close()


@pytest.fixture
def fixed_time():
    """A Wednesday at 10:30 UTC."""
    return datetime(2025, 10, 1, 10, 30, tzinfo=UTC)


@pytest.fixture
def make_event(fixed_time):
    """Factory for stored events of a user."""

    def _make(event_type="login", entity_id="alice", offset_minutes=0, **event_data):
        return BehavioralEvent.from_payload(
            {
                "entity_id": entity_id,
                "entity_type": "user",
                "event_type": event_type,
                "event_data": event_data,
                "timestamp": fixed_time + timedelta(minutes=offset_minutes),
            }
        )

    return _make
