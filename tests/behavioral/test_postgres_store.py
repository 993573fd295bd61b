"""
Tests for the PostgreSQL behavioral store.
"""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
from psycopg2.extras import Json

from src.behavioral.database import SCHEMA, BehavioralDatabase
from src.behavioral.errors import PersistenceError
from src.behavioral.models import (
    AnomalyDetection,
    AnomalyType,
    BehavioralProfile,
    EntityType,
    ProfileStatus,
    Severity,
)


@pytest.fixture
def mock_cursor():
    return MagicMock()


@pytest.fixture
def mock_connection(mock_cursor):
    connection = MagicMock()
    connection.closed = 0
    connection.cursor.return_value = mock_cursor
    return connection


@pytest.fixture
def db(config, mock_connection):
    with patch("src.core.database.psycopg2.connect", return_value=mock_connection):
        yield BehavioralDatabase(config)


class TestBehavioralDatabase:
    """Tests for BehavioralDatabase."""

    @patch("src.core.database.psycopg2.connect")
    def test_initialization(self, mock_connect, config):
        BehavioralDatabase(config)

        mock_connect.assert_called_once_with(
            host=config.postgres_host,
            port=config.postgres_port,
            database=config.postgres_database,
            user=config.postgres_user,
            password=config.postgres_password,
            connect_timeout=10,
        )

    def test_ensure_schema(self, db, mock_connection, mock_cursor):
        db.ensure_schema()

        mock_cursor.execute.assert_called_once_with(SCHEMA)
        mock_connection.commit.assert_called_once()

    def test_ensure_schema_failure_raises(self, db, mock_cursor):
        mock_cursor.execute.side_effect = Exception("permission denied")

        with pytest.raises(Exception, match="permission denied"):
            db.ensure_schema()


class TestProfiles:
    """Tests for profile persistence."""

    def test_upsert_profile(self, db, mock_cursor):
        profile = BehavioralProfile.create("alice", EntityType.USER)

        assert db.upsert_profile(profile) is True

        query, params = mock_cursor.execute.call_args[0]
        assert "ON CONFLICT (entity_id, entity_type)" in query
        assert params["entity_type"] == "user"
        assert params["status"] == "learning"
        assert isinstance(params["current_metrics"], Json)

    def test_upsert_profile_failure(self, db, mock_cursor):
        mock_cursor.execute.side_effect = Exception("deadlock detected")

        profile = BehavioralProfile.create("alice", EntityType.USER)
        assert db.upsert_profile(profile) is False

    def test_get_profile(self, db, mock_cursor):
        profile = BehavioralProfile.create("srv-1", EntityType.SYSTEM)
        profile.status = ProfileStatus.ACTIVE
        row = profile.to_dict()
        row["created_at"] = profile.created_at
        row["last_updated"] = profile.last_updated
        mock_cursor.description = [(k,) for k in row]
        mock_cursor.fetchone.return_value = tuple(row.values())

        loaded = db.get_profile("srv-1", EntityType.SYSTEM)

        assert loaded == profile
        assert mock_cursor.execute.call_args[0][1] == ("srv-1", "system")

    def test_get_profile_missing(self, db, mock_cursor):
        mock_cursor.fetchone.return_value = None
        assert db.get_profile("ghost", EntityType.USER) is None

    def test_get_profile_failure_raises(self, db, mock_cursor):
        mock_cursor.execute.side_effect = Exception("connection reset")

        with pytest.raises(PersistenceError):
            db.get_profile("alice", EntityType.USER)

    def test_list_profiles_failure_raises(self, db, mock_cursor):
        mock_cursor.execute.side_effect = Exception("connection reset")

        with pytest.raises(PersistenceError, match="list behavioral profiles"):
            db.list_profiles()


class TestEvents:
    """Tests for the durable event log."""

    def test_append_event(self, db, mock_cursor, make_event):
        event = make_event("login", location="Paris")

        assert db.append_event(event) is True

        params = mock_cursor.execute.call_args[0][1]
        assert params["id"] == event.id
        assert params["processed"] is False
        assert isinstance(params["event_data"], Json)

    def test_mark_event_processed(self, db, mock_cursor):
        assert db.mark_event_processed("evt_1") is True
        assert mock_cursor.execute.call_args[0][1] == {"id": "evt_1"}

    def test_mark_event_processed_failure(self, db, mock_cursor):
        mock_cursor.execute.side_effect = Exception("timeout")
        assert db.mark_event_processed("evt_1") is False

    def test_list_events(self, db, mock_cursor, make_event):
        event = make_event("risk_access", sensitivity=3)
        row = event.to_dict()
        row["timestamp"] = event.timestamp
        mock_cursor.description = [(k,) for k in row]
        mock_cursor.fetchall.return_value = [tuple(row.values())]
        since = datetime(2025, 9, 1, tzinfo=UTC)

        events = db.list_events("alice", EntityType.USER, since)

        assert events == [event]
        assert mock_cursor.execute.call_args[0][1] == ("alice", "user", since)

    def test_list_unprocessed_events_failure_raises(self, db, mock_cursor):
        mock_cursor.execute.side_effect = Exception("boom")

        with pytest.raises(PersistenceError):
            db.list_unprocessed_events()


class TestAnomalies:
    """Tests for anomaly records."""

    def _anomaly(self):
        return AnomalyDetection(
            entity_id="alice",
            anomaly_type=AnomalyType.STATISTICAL,
            severity=Severity.HIGH,
            confidence=0.7,
            description="data_access deviates",
            affected_metrics=["data_access"],
            detection_method="z-score",
        )

    def test_insert_anomaly(self, db, mock_cursor):
        assert db.insert_anomaly(self._anomaly()) is True

        params = mock_cursor.execute.call_args[0][1]
        assert params["severity"] == "high"
        assert isinstance(params["affected_metrics"], Json)

    def test_insert_anomaly_failure(self, db, mock_cursor):
        mock_cursor.execute.side_effect = Exception("check constraint")
        assert db.insert_anomaly(self._anomaly()) is False

    def test_list_anomalies_filters(self, db, mock_cursor):
        mock_cursor.description = [("id",)]
        mock_cursor.fetchall.return_value = []

        db.list_anomalies(entity_id="alice", severity=Severity.CRITICAL, limit=5)

        query, params = mock_cursor.execute.call_args[0]
        assert "entity_id = %(entity_id)s AND severity = %(severity)s" in query
        assert "anomaly_type" not in params
        assert params == {"limit": 5, "entity_id": "alice", "severity": "critical"}

    def test_list_anomalies_without_filters(self, db, mock_cursor):
        mock_cursor.description = [("id",)]
        mock_cursor.fetchall.return_value = []

        assert db.list_anomalies() == []
        assert "WHERE" not in mock_cursor.execute.call_args[0][0]


class TestStatistics:
    """Tests for aggregate queries."""

    def test_event_stats(self, db, mock_cursor):
        mock_cursor.description = [("total_events",), ("processed_events",), ("avg_anomaly_score",)]
        mock_cursor.fetchone.return_value = (10, 8, None)

        stats = db.event_stats(datetime(2025, 9, 1, tzinfo=UTC))

        assert stats == {"total_events": 10, "processed_events": 8, "avg_anomaly_score": None}

    def test_event_stats_failure(self, db, mock_cursor):
        mock_cursor.execute.side_effect = Exception("boom")
        assert db.event_stats(datetime(2025, 9, 1, tzinfo=UTC)) == {}

    def test_profile_stats_failure(self, db, mock_cursor):
        mock_cursor.execute.side_effect = Exception("boom")
        assert db.profile_stats() == []
