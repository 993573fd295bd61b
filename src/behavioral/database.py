"""
PostgreSQL operations for the behavioral analysis engine.

Handles:
- Profile write-through and rehydration
- Durable event log and processed flags
- Anomaly and insight records
- Aggregate queries for statistics reporting
"""

from datetime import datetime
from typing import Any, Optional

import structlog
from psycopg2.extras import Json

from src.core.database import PostgresConnection

from .errors import PersistenceError
from .models import (
    AnomalyDetection,
    AnomalyType,
    BehavioralConfig,
    BehavioralEvent,
    BehavioralInsight,
    BehavioralProfile,
    EntityType,
    Severity,
)
from .store import BehavioralStore

logger = structlog.get_logger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS behavioral_profiles (
        profile_id VARCHAR(200) PRIMARY KEY,
        entity_id VARCHAR(100) NOT NULL,
        entity_type VARCHAR(20) NOT NULL
            CHECK (entity_type IN ('user', 'system', 'application', 'process')),
        baseline_metrics JSONB NOT NULL,
        current_metrics JSONB NOT NULL,
        risk_score REAL NOT NULL DEFAULT 0,
        confidence REAL NOT NULL DEFAULT 0,
        status VARCHAR(20) NOT NULL DEFAULT 'learning'
            CHECK (status IN ('learning', 'active', 'suspicious', 'compromised')),
        last_updated TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        UNIQUE(entity_id, entity_type)
    );

    CREATE TABLE IF NOT EXISTS behavioral_events (
        id VARCHAR(100) PRIMARY KEY,
        entity_id VARCHAR(100) NOT NULL,
        entity_type VARCHAR(20) NOT NULL,
        event_type VARCHAR(100) NOT NULL,
        event_data JSONB NOT NULL,
        timestamp TIMESTAMPTZ NOT NULL,
        processed BOOLEAN NOT NULL DEFAULT FALSE,
        anomaly_score REAL,
        risk_level VARCHAR(20)
            CHECK (risk_level IN ('low', 'medium', 'high', 'critical')),
        created_at TIMESTAMPTZ DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS anomaly_detections (
        id VARCHAR(100) PRIMARY KEY,
        entity_id VARCHAR(100) NOT NULL,
        anomaly_type VARCHAR(20) NOT NULL
            CHECK (anomaly_type IN
                ('statistical', 'pattern', 'behavioral', 'temporal', 'contextual')),
        severity VARCHAR(20) NOT NULL
            CHECK (severity IN ('low', 'medium', 'high', 'critical')),
        confidence REAL NOT NULL,
        description TEXT NOT NULL,
        affected_metrics JSONB,
        detection_method VARCHAR(50) NOT NULL,
        timestamp TIMESTAMPTZ NOT NULL,
        resolved BOOLEAN DEFAULT FALSE,
        false_positive BOOLEAN DEFAULT FALSE,
        investigation_notes TEXT,
        created_at TIMESTAMPTZ DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS behavioral_insights (
        id SERIAL PRIMARY KEY,
        type VARCHAR(20) NOT NULL
            CHECK (type IN ('trend', 'pattern', 'correlation', 'prediction')),
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        confidence REAL NOT NULL,
        impact VARCHAR(10) NOT NULL CHECK (impact IN ('low', 'medium', 'high')),
        recommendation TEXT NOT NULL,
        affected_entities JSONB,
        supporting_data JSONB,
        timestamp TIMESTAMPTZ NOT NULL,
        created_at TIMESTAMPTZ DEFAULT NOW()
    );

    CREATE INDEX IF NOT EXISTS idx_behavioral_profiles_entity
    ON behavioral_profiles(entity_id, entity_type);

    CREATE INDEX IF NOT EXISTS idx_behavioral_events_entity
    ON behavioral_events(entity_id, entity_type);

    CREATE INDEX IF NOT EXISTS idx_behavioral_events_timestamp
    ON behavioral_events(timestamp);

    CREATE INDEX IF NOT EXISTS idx_anomaly_detections_entity
    ON anomaly_detections(entity_id);
"""


class BehavioralDatabase(PostgresConnection, BehavioralStore):
    """PostgreSQL-backed store for the behavioral engine"""

    def __init__(self, config: BehavioralConfig):
        super().__init__(
            host=config.postgres_host,
            port=config.postgres_port,
            database=config.postgres_database,
            user=config.postgres_user,
            password=config.postgres_password,
        )
        self.config = config

    def ensure_schema(self) -> None:
        """Create behavioral tables if they don't exist"""
        with self.get_cursor() as cursor:
            cursor.execute(SCHEMA)
        logger.info("Ensured behavioral tables exist")

    # ========================================
    # Profiles
    # ========================================

    def upsert_profile(self, profile: BehavioralProfile) -> bool:
        """Insert or replace a profile, keyed on (entity_id, entity_type)"""
        query = """
            INSERT INTO behavioral_profiles (
                profile_id, entity_id, entity_type, baseline_metrics, current_metrics,
                risk_score, confidence, status, last_updated, created_at
            ) VALUES (
                %(profile_id)s, %(entity_id)s, %(entity_type)s, %(baseline_metrics)s,
                %(current_metrics)s, %(risk_score)s, %(confidence)s, %(status)s,
                %(last_updated)s, %(created_at)s
            )
            ON CONFLICT (entity_id, entity_type)
            DO UPDATE SET
                baseline_metrics = EXCLUDED.baseline_metrics,
                current_metrics = EXCLUDED.current_metrics,
                risk_score = EXCLUDED.risk_score,
                confidence = EXCLUDED.confidence,
                status = EXCLUDED.status,
                last_updated = EXCLUDED.last_updated
        """
        data = profile.to_dict()
        data["baseline_metrics"] = Json(data["baseline_metrics"])
        data["current_metrics"] = Json(data["current_metrics"])

        try:
            with self.get_cursor() as cursor:
                cursor.execute(query, data)
            logger.debug("Profile saved", profile_key=profile.key)
            return True
        except Exception as e:
            logger.error("Failed to save profile", profile_key=profile.key, error=str(e))
            return False

    def get_profile(self, entity_id: str, entity_type: EntityType) -> Optional[BehavioralProfile]:
        query = """
            SELECT profile_id, entity_id, entity_type, baseline_metrics, current_metrics,
                   risk_score, confidence, status, last_updated, created_at
            FROM behavioral_profiles
            WHERE entity_id = %s AND entity_type = %s
        """
        try:
            row = self.fetch_one(query, (entity_id, entity_type.value))
            return self._row_to_profile(row) if row else None
        except Exception as e:
            logger.error(
                "Failed to load profile",
                entity_id=entity_id,
                entity_type=entity_type.value,
                error=str(e),
            )
            raise PersistenceError(f"Failed to load profile for {entity_id}") from e

    def list_profiles(self) -> list[BehavioralProfile]:
        query = """
            SELECT profile_id, entity_id, entity_type, baseline_metrics, current_metrics,
                   risk_score, confidence, status, last_updated, created_at
            FROM behavioral_profiles
        """
        try:
            return [self._row_to_profile(row) for row in self.fetch_all(query)]
        except Exception as e:
            logger.error("Failed to list profiles", error=str(e))
            raise PersistenceError("Failed to list behavioral profiles") from e

    # ========================================
    # Events
    # ========================================

    def append_event(self, event: BehavioralEvent) -> bool:
        query = """
            INSERT INTO behavioral_events (
                id, entity_id, entity_type, event_type, event_data,
                timestamp, processed, anomaly_score, risk_level
            ) VALUES (
                %(id)s, %(entity_id)s, %(entity_type)s, %(event_type)s, %(event_data)s,
                %(timestamp)s, %(processed)s, %(anomaly_score)s, %(risk_level)s
            )
        """
        data = event.to_dict()
        data["event_data"] = Json(data["event_data"])

        try:
            with self.get_cursor() as cursor:
                cursor.execute(query, data)
            return True
        except Exception as e:
            logger.error("Failed to store event", event_id=event.id, error=str(e))
            return False

    def mark_event_processed(self, event_id: str) -> bool:
        query = "UPDATE behavioral_events SET processed = TRUE WHERE id = %(id)s"
        return self.execute_query(query, {"id": event_id})

    def list_events(
        self, entity_id: str, entity_type: EntityType, since: datetime
    ) -> list[BehavioralEvent]:
        query = """
            SELECT id, entity_id, entity_type, event_type, event_data,
                   timestamp, processed, anomaly_score, risk_level
            FROM behavioral_events
            WHERE entity_id = %s AND entity_type = %s AND timestamp >= %s
            ORDER BY timestamp
        """
        try:
            rows = self.fetch_all(query, (entity_id, entity_type.value, since))
            events = [self._row_to_event(row) for row in rows]
            logger.debug(
                "Queried entity events",
                entity_id=entity_id,
                entity_type=entity_type.value,
                rows=len(events),
            )
            return events
        except Exception as e:
            logger.error(
                "Failed to query entity events",
                entity_id=entity_id,
                entity_type=entity_type.value,
                error=str(e),
            )
            return []

    def list_unprocessed_events(self) -> list[BehavioralEvent]:
        query = """
            SELECT id, entity_id, entity_type, event_type, event_data,
                   timestamp, processed, anomaly_score, risk_level
            FROM behavioral_events
            WHERE processed = FALSE
            ORDER BY timestamp, created_at
        """
        try:
            return [self._row_to_event(row) for row in self.fetch_all(query)]
        except Exception as e:
            logger.error("Failed to query unprocessed events", error=str(e))
            raise PersistenceError("Failed to query unprocessed events") from e

    # ========================================
    # Anomalies and insights
    # ========================================

    def insert_anomaly(self, anomaly: AnomalyDetection) -> bool:
        query = """
            INSERT INTO anomaly_detections (
                id, entity_id, anomaly_type, severity, confidence,
                description, affected_metrics, detection_method, timestamp,
                resolved, false_positive, investigation_notes
            ) VALUES (
                %(id)s, %(entity_id)s, %(anomaly_type)s, %(severity)s, %(confidence)s,
                %(description)s, %(affected_metrics)s, %(detection_method)s, %(timestamp)s,
                %(resolved)s, %(false_positive)s, %(investigation_notes)s
            )
        """
        data = anomaly.to_dict()
        data["affected_metrics"] = Json(data["affected_metrics"])

        try:
            with self.get_cursor() as cursor:
                cursor.execute(query, data)
            logger.debug(
                "Anomaly inserted",
                entity_id=anomaly.entity_id,
                anomaly_type=anomaly.anomaly_type.value,
                severity=anomaly.severity.value,
            )
            return True
        except Exception as e:
            logger.error(
                "Failed to insert anomaly",
                entity_id=anomaly.entity_id,
                anomaly_type=anomaly.anomaly_type.value,
                error=str(e),
            )
            return False

    def list_anomalies(
        self,
        entity_id: Optional[str] = None,
        anomaly_type: Optional[AnomalyType] = None,
        severity: Optional[Severity] = None,
        limit: int = 100,
    ) -> list[AnomalyDetection]:
        clauses = []
        params: dict[str, Any] = {"limit": limit}
        if entity_id is not None:
            clauses.append("entity_id = %(entity_id)s")
            params["entity_id"] = entity_id
        if anomaly_type is not None:
            clauses.append("anomaly_type = %(anomaly_type)s")
            params["anomaly_type"] = anomaly_type.value
        if severity is not None:
            clauses.append("severity = %(severity)s")
            params["severity"] = severity.value

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        query = f"""
            SELECT id, entity_id, anomaly_type, severity, confidence, description,
                   affected_metrics, detection_method, timestamp, resolved,
                   false_positive, investigation_notes
            FROM anomaly_detections
            {where}
            ORDER BY timestamp DESC
            LIMIT %(limit)s
        """
        try:
            return [AnomalyDetection.from_dict(row) for row in self.fetch_all(query, params)]
        except Exception as e:
            logger.error("Failed to list anomalies", error=str(e), filters=params)
            return []

    def insert_insight(self, insight: BehavioralInsight) -> bool:
        query = """
            INSERT INTO behavioral_insights (
                type, title, description, confidence, impact,
                recommendation, affected_entities, supporting_data, timestamp
            ) VALUES (
                %(type)s, %(title)s, %(description)s, %(confidence)s, %(impact)s,
                %(recommendation)s, %(affected_entities)s, %(supporting_data)s, %(timestamp)s
            )
        """
        data = insight.to_dict()
        data["affected_entities"] = Json(data["affected_entities"])
        data["supporting_data"] = Json(data["supporting_data"])

        try:
            with self.get_cursor() as cursor:
                cursor.execute(query, data)
            return True
        except Exception as e:
            logger.error("Failed to insert insight", title=insight.title, error=str(e))
            return False

    # ========================================
    # Statistics
    # ========================================

    def profile_stats(self) -> list[dict[str, Any]]:
        query = """
            SELECT entity_type, status, COUNT(*) AS count,
                   AVG(risk_score) AS avg_risk_score,
                   AVG(confidence) AS avg_confidence
            FROM behavioral_profiles
            GROUP BY entity_type, status
        """
        try:
            return self.fetch_all(query)
        except Exception as e:
            logger.error("Failed to aggregate profile statistics", error=str(e))
            return []

    def anomaly_stats(self, since: datetime) -> list[dict[str, Any]]:
        query = """
            SELECT anomaly_type, severity, COUNT(*) AS count,
                   AVG(confidence) AS avg_confidence
            FROM anomaly_detections
            WHERE created_at >= %s
            GROUP BY anomaly_type, severity
        """
        try:
            return self.fetch_all(query, (since,))
        except Exception as e:
            logger.error("Failed to aggregate anomaly statistics", error=str(e))
            return []

    def event_stats(self, since: datetime) -> dict[str, Any]:
        query = """
            SELECT COUNT(*) AS total_events,
                   COUNT(*) FILTER (WHERE processed) AS processed_events,
                   AVG(anomaly_score) AS avg_anomaly_score
            FROM behavioral_events
            WHERE timestamp >= %s
        """
        try:
            return self.fetch_one(query, (since,)) or {}
        except Exception as e:
            logger.error("Failed to aggregate event statistics", error=str(e))
            return {}

    # ========================================
    # Row mapping
    # ========================================

    @staticmethod
    def _row_to_profile(row: dict[str, Any]) -> BehavioralProfile:
        return BehavioralProfile.from_dict(row)

    @staticmethod
    def _row_to_event(row: dict[str, Any]) -> BehavioralEvent:
        return BehavioralEvent.from_dict(row)
