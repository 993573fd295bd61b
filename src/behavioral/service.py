"""
Behavioral analysis service.

Public entry point of the engine. Owns the profile cache, the pending event
queue and the drain scheduler for one durable store. Public operations never
raise: failures come back as {"success": False, "error": ..., "error_code": ...}.
"""

import threading
from datetime import timedelta
from decimal import Decimal
from typing import Any, Optional

import structlog

from .analytics import AnalyticsReader
from .cache import RedisProfileCache
from .detectors import build_detectors
from .errors import (
    BehavioralAnalysisError,
    NotFoundError,
    NotInitializedError,
    PersistenceError,
    ProcessingError,
)
from .event_queue import EventQueue
from .features import extract_features
from .insights import InsightGenerator, default_generators
from .models import (
    AnomalyDetection,
    BehavioralConfig,
    BehavioralEvent,
    BehavioralProfile,
    EntityType,
    Severity,
    utcnow,
)
from .profiles import ProfileManager
from .scheduler import DrainScheduler
from .store import BehavioralStore

logger = structlog.get_logger(__name__)


def _failure(error: Exception) -> dict[str, Any]:
    if isinstance(error, BehavioralAnalysisError):
        code = error.code
    elif isinstance(error, ValueError):
        code = "InvalidEvent"
    else:
        code = "Internal"
    return {"success": False, "error": str(error) or error.__class__.__name__, "error_code": code}


def _coerce_entity_type(entity_type: EntityType | str) -> EntityType:
    if isinstance(entity_type, EntityType):
        return entity_type
    try:
        return EntityType(entity_type)
    except ValueError:
        raise ValueError(f"Unknown entity type '{entity_type}'") from None


def _plain_row(row: dict[str, Any]) -> dict[str, Any]:
    """Convert driver numeric types (Decimal) to float"""
    return {k: float(v) if isinstance(v, Decimal) else v for k, v in row.items()}


class BehavioralAnalysisService:
    """Ingests behavioral events, maintains profiles and raises anomalies"""

    def __init__(
        self,
        config: BehavioralConfig,
        store: BehavioralStore,
        cache: Optional[RedisProfileCache] = None,
        insight_generators: Optional[list[InsightGenerator]] = None,
    ):
        self.config = config
        self.store = store
        self.profiles = ProfileManager(store, config, cache)
        self.queue = EventQueue()
        self.analytics = AnalyticsReader(store, config)

        self.event_detectors = build_detectors(config.event_detectors, config)
        self.profile_detectors = build_detectors(config.profile_detectors, config)
        self.insight_generators = (
            insight_generators if insight_generators is not None else default_generators()
        )

        # Serializes every profile mutation: drains and the operator path
        self._drain_lock = threading.Lock()
        self.scheduler = DrainScheduler(
            self._scheduled_drain,
            interval_seconds=config.update_interval_minutes * 60,
        )
        self.initialized = False

        self.stats = {
            "events_recorded": 0,
            "events_processed": 0,
            "events_failed": 0,
            "anomalies_detected": 0,
            "backpressure_drains": 0,
        }

    # ========================================
    # Lifecycle
    # ========================================

    def initialize(self, start_scheduler: bool = True) -> bool:
        """Prepare storage, rehydrate profiles and re-queue unprocessed events

        Failures leave the service in degraded mode (initialized=False).
        """
        try:
            self.store.ensure_schema()
            self.profiles.load_all()

            queued_ids = {event.id for event in self.queue.snapshot()}
            pending = [e for e in self.store.list_unprocessed_events() if e.id not in queued_ids]
            for event in pending:
                self.queue.append(event)

            self.initialized = True
            logger.info(
                "Behavioral analysis initialized",
                profiles=len(self.profiles),
                pending_events=len(pending),
                event_detectors=[d.name for d in self.event_detectors],
                profile_detectors=[d.name for d in self.profile_detectors],
            )
        except Exception as e:
            self.initialized = False
            logger.error("Behavioral analysis initialization failed", error=str(e), exc_info=True)
            return False

        if start_scheduler:
            self.scheduler.start()
        return True

    def close(self) -> None:
        """Stop the scheduler, letting an in-flight batch finish, then close the store"""
        self.scheduler.stop()
        self.store.close()
        self.initialized = False
        logger.info("Behavioral analysis closed", **self.stats)

    def _require_initialized(self) -> None:
        if not self.initialized:
            raise NotInitializedError()

    # ========================================
    # Ingestion
    # ========================================

    def record_event(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Validate, persist and enqueue one event

        Returns immediately unless the queue exceeds the back-pressure
        threshold, in which case the backlog is drained before returning.
        """
        try:
            self._require_initialized()
            event = BehavioralEvent.from_payload(payload)

            if not self.store.append_event(event):
                raise PersistenceError("Failed to store behavioral event")

            queued = self.queue.append(event)
            self.stats["events_recorded"] += 1
            logger.debug(
                "Behavioral event recorded",
                event_id=event.id,
                entity_id=event.entity_id,
                event_type=event.event_type,
                queue_size=queued,
            )

            if queued > self.config.backpressure_threshold:
                self._drain_backlog()

            return {"success": True, "event_id": event.id}

        except Exception as e:
            logger.error("Event recording failed", error=str(e))
            return _failure(e)

    def queue_size(self) -> int:
        return len(self.queue)

    # ========================================
    # Draining
    # ========================================

    def process_event_queue(self, limit: Optional[int] = None) -> int:
        """Drain up to `limit` events (default batch_size), waiting for any running drain

        Returns:
            Number of events processed successfully
        """
        with self._drain_lock:
            processed, failed = self._process_events(
                self.queue.pop_batch(limit or self.config.batch_size)
            )
            self.queue.requeue_front(failed)
            return processed

    def _scheduled_drain(self) -> int:
        if len(self.queue) == 0:
            return 0
        if not self._drain_lock.acquire(blocking=False):
            logger.debug("Drain already running, skipping scheduled tick")
            return 0
        try:
            processed, failed = self._process_events(self.queue.pop_batch(self.config.batch_size))
            self.queue.requeue_front(failed)
            return processed
        finally:
            self._drain_lock.release()

    def _drain_backlog(self) -> int:
        with self._drain_lock:
            self.stats["backpressure_drains"] += 1
            remaining = len(self.queue)
            logger.warning("Event queue over threshold, draining backlog", backlog=remaining)

            processed = 0
            failed: list[BehavioralEvent] = []
            while remaining > 0:
                batch = self.queue.pop_batch(min(self.config.batch_size, remaining))
                if not batch:
                    break
                remaining -= len(batch)
                batch_processed, batch_failed = self._process_events(batch)
                processed += batch_processed
                failed.extend(batch_failed)

            self.queue.requeue_front(failed)
            return processed

    def _process_events(
        self, events: list[BehavioralEvent]
    ) -> tuple[int, list[BehavioralEvent]]:
        """Fold events in FIFO order; failed events are returned for re-queueing"""
        processed = 0
        failed = []
        for event in events:
            try:
                anomalies = self._process_event(event)
                processed += 1
                self.stats["events_processed"] += 1
                self.stats["anomalies_detected"] += len(anomalies)
            except Exception as e:
                error = e if isinstance(e, BehavioralAnalysisError) else ProcessingError(str(e))
                failed.append(event)
                self.stats["events_failed"] += 1
                logger.error(
                    "Failed to process behavioral event",
                    event_id=event.id,
                    entity_id=event.entity_id,
                    event_type=event.event_type,
                    error=str(error),
                    error_code=error.code,
                )

        if events:
            logger.info(
                "Event batch processed",
                processed=processed,
                failed=len(failed),
                queue_size=len(self.queue),
            )
        return processed, failed

    def _process_event(self, event: BehavioralEvent) -> list[AnomalyDetection]:
        features = extract_features(event)
        profile = self.profiles.get_or_create(event.entity_id, event.entity_type)
        self.profiles.fold(profile, features)

        anomalies = []
        for detector in self.event_detectors:
            anomalies.extend(detector.detect(profile, event))

        self.profiles.persist(profile)
        self._store_anomalies(anomalies)

        if not self.store.mark_event_processed(event.id):
            raise PersistenceError(f"Failed to mark event {event.id} as processed")
        event.processed = True

        for anomaly in anomalies:
            logger.info(
                "Real-time anomaly detected",
                entity_id=anomaly.entity_id,
                metrics=anomaly.affected_metrics,
                severity=anomaly.severity.value,
                confidence=round(anomaly.confidence, 3),
            )
        return anomalies

    def _store_anomalies(self, anomalies: list[AnomalyDetection]) -> None:
        for anomaly in anomalies:
            if not self.store.insert_anomaly(anomaly):
                logger.warning("Anomaly write failed", anomaly_id=anomaly.id)

    # ========================================
    # Analysis
    # ========================================

    def analyze_user_behavior(self, user_id: str, period_days: int = 30) -> dict[str, Any]:
        try:
            self._require_initialized()
            analysis = self.analytics.analyze_user(str(user_id), period_days)
            return {"success": True, "analysis": analysis}
        except Exception as e:
            logger.error("User behavior analysis failed", user_id=user_id, error=str(e))
            return _failure(e)

    def detect_anomalies(self, entity_id: str, entity_type: EntityType | str) -> dict[str, Any]:
        """Run the profile-scope detectors over an entity and store the findings"""
        try:
            self._require_initialized()
            profile = self.profiles.get(entity_id, _coerce_entity_type(entity_type))
            if profile is None:
                raise NotFoundError("No behavioral profile found")

            anomalies = []
            for detector in self.profile_detectors:
                anomalies.extend(detector.detect(profile))

            self._store_anomalies(anomalies)

            logger.info(
                "Anomaly detection completed",
                entity_id=entity_id,
                entity_type=profile.entity_type.value,
                anomalies=len(anomalies),
                high_severity=sum(
                    1 for a in anomalies if a.severity in (Severity.HIGH, Severity.CRITICAL)
                ),
            )
            return {"success": True, "anomalies": anomalies}

        except Exception as e:
            logger.error("Anomaly detection failed", entity_id=entity_id, error=str(e))
            return _failure(e)

    def generate_insights(self, entity_ids: Optional[list[str]] = None) -> dict[str, Any]:
        try:
            self._require_initialized()

            insights = []
            for generator in self.insight_generators:
                insights.extend(generator.generate(entity_ids))

            for insight in insights:
                if not self.store.insert_insight(insight):
                    logger.warning("Insight write failed", title=insight.title)

            logger.info(
                "Behavioral insights generated",
                total=len(insights),
                high_impact=sum(1 for i in insights if i.impact.value == "high"),
            )
            return {"success": True, "insights": insights}

        except Exception as e:
            logger.error("Insight generation failed", error=str(e))
            return _failure(e)

    # ========================================
    # Profiles
    # ========================================

    def get_behavioral_profile(
        self, entity_id: str, entity_type: EntityType | str
    ) -> Optional[BehavioralProfile]:
        if not self.initialized:
            return None
        try:
            return self.profiles.get(entity_id, _coerce_entity_type(entity_type))
        except Exception as e:
            logger.error("Failed to load behavioral profile", entity_id=entity_id, error=str(e))
            return None

    def update_behavioral_profile(self, profile: BehavioralProfile) -> dict[str, Any]:
        """Operator path for replacing a profile, e.g. to change its status"""
        try:
            self._require_initialized()
            with self._drain_lock:
                profile.last_updated = utcnow()
                if not self.profiles.persist(profile):
                    raise PersistenceError("Failed to store behavioral profile")

            logger.info(
                "Behavioral profile updated",
                profile_key=profile.key,
                status=profile.status.value,
            )
            return {"success": True}

        except Exception as e:
            logger.error("Behavioral profile update failed", error=str(e))
            return _failure(e)

    # ========================================
    # Statistics
    # ========================================

    def get_behavioral_stats(self) -> dict[str, Any]:
        try:
            self._require_initialized()
            since = utcnow() - timedelta(days=self.config.stats_window_days)

            profile_rows = [_plain_row(r) for r in self.store.profile_stats()]
            anomaly_rows = [_plain_row(r) for r in self.store.anomaly_stats(since)]
            events = _plain_row(self.store.event_stats(since))

            total_events = int(events.get("total_events") or 0)
            processed_events = int(events.get("processed_events") or 0)

            stats = {
                "profiles": {
                    "total": sum(int(r["count"]) for r in profile_rows),
                    "by_type_and_status": profile_rows,
                },
                "anomalies": {
                    "total": sum(int(r["count"]) for r in anomaly_rows),
                    "by_type_and_severity": anomaly_rows,
                },
                "events": {
                    "total_events": total_events,
                    "processed_events": processed_events,
                    "processing_rate": (
                        processed_events / total_events * 100 if total_events else 0.0
                    ),
                    "avg_anomaly_score": float(events.get("avg_anomaly_score") or 0.0),
                },
                "queue_size": len(self.queue),
            }
            return {"success": True, "stats": stats}

        except Exception as e:
            logger.error("Failed to get behavioral stats", error=str(e))
            return _failure(e)
