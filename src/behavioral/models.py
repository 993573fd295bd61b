"""
Data models and configuration for the behavioral analysis engine.
"""

import copy
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional

ScalarValue = str | int | float | bool


class EntityType(Enum):
    """Kinds of entity whose behavior is tracked"""

    USER = "user"
    SYSTEM = "system"
    APPLICATION = "application"
    PROCESS = "process"


class ProfileStatus(Enum):
    """Lifecycle states of a behavioral profile"""

    LEARNING = "learning"
    ACTIVE = "active"
    SUSPICIOUS = "suspicious"
    COMPROMISED = "compromised"


class Trend(Enum):
    STABLE = "stable"
    INCREASING = "increasing"
    DECREASING = "decreasing"
    VOLATILE = "volatile"


class AnomalyType(Enum):
    """Families of anomaly findings"""

    STATISTICAL = "statistical"
    PATTERN = "pattern"
    BEHAVIORAL = "behavioral"
    TEMPORAL = "temporal"
    CONTEXTUAL = "contextual"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class InsightType(Enum):
    TREND = "trend"
    PATTERN = "pattern"
    CORRELATION = "correlation"
    PREDICTION = "prediction"


class Impact(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: datetime | str | None) -> datetime:
    """Parse an ISO-8601 string or datetime into UTC, assuming UTC for naive values"""
    if value is None:
        return utcnow()
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def generate_id(prefix: str) -> str:
    """Generate a time-ordered identifier such as evt_1700000000000_3f2a..."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}"


@dataclass
class BehavioralConfig:
    """Configuration for the behavioral analysis engine"""

    # Anomaly thresholds per detection family
    statistical_threshold: float = 2.5  # standard deviations
    pattern_threshold: float = 0.8  # similarity
    behavioral_threshold: float = 0.7
    temporal_threshold: float = 3.0
    contextual_threshold: float = 0.6

    # Profile risk score above which a behavioral anomaly is raised
    behavioral_risk_threshold: float = 7.0

    # Learning
    min_data_points: int = 50
    min_learning_metrics: int = 3
    ema_alpha: float = 0.1

    # Queue and drain behavior
    batch_size: int = 50
    backpressure_threshold: int = 100
    update_interval_minutes: float = 15.0

    # Read side
    min_analysis_events: int = 10
    stats_window_days: int = 30

    # Detector sets, resolved through the detector registry
    event_detectors: list[str] = field(default_factory=lambda: ["event_statistical"])
    profile_detectors: list[str] = field(
        default_factory=lambda: ["statistical", "pattern", "behavioral", "temporal", "contextual"]
    )

    # PostgreSQL settings
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_database: str = "behavioral_db"
    postgres_user: str = "behavioral"
    postgres_password: str = "behavioral_password"

    # Redis profile mirror
    redis_enabled: bool = False
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    cache_ttl_seconds: int = 3600

    # Kafka ingestion
    kafka_bootstrap_servers: str = "localhost:9092"
    kafka_topic: str = "behavioral-events"
    kafka_group_id: str = "behavioral-ingest-group"
    kafka_auto_offset_reset: str = "earliest"
    max_poll_records: int = 500
    enable_auto_commit: bool = False


@dataclass
class MetricBaseline:
    """Reference distribution of a metric"""

    mean: float = 0.0
    std_dev: float = 0.0
    min: float = 0.0
    max: float = 0.0
    percentiles: dict[str, float] = field(
        default_factory=lambda: {"P10": 0.0, "P25": 0.0, "P50": 0.0, "P75": 0.0, "P90": 0.0}
    )


@dataclass
class BehavioralMetric:
    """Running statistics of one named feature within a profile"""

    name: str
    value: float = 0.0
    baseline: MetricBaseline = field(default_factory=MetricBaseline)
    trend: Trend = Trend.STABLE
    anomaly_score: float = 0.0
    data_points: int = 0
    last_anomaly: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["trend"] = self.trend.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "BehavioralMetric":
        return cls(
            name=data["name"],
            value=data.get("value", 0.0),
            baseline=MetricBaseline(**data.get("baseline", {})),
            trend=Trend(data.get("trend", Trend.STABLE.value)),
            anomaly_score=data.get("anomaly_score", 0.0),
            data_points=data.get("data_points", 0),
            last_anomaly=data.get("last_anomaly"),
        )

    def snapshot(self) -> "BehavioralMetric":
        """Independent copy, used when freezing a baseline"""
        return copy.deepcopy(self)


@dataclass
class BehavioralProfile:
    """Evolving statistical summary of one entity's behavior"""

    profile_id: str
    entity_id: str
    entity_type: EntityType
    baseline_metrics: dict[str, BehavioralMetric] = field(default_factory=dict)
    current_metrics: dict[str, BehavioralMetric] = field(default_factory=dict)
    risk_score: float = 0.0
    confidence: float = 0.0
    status: ProfileStatus = ProfileStatus.LEARNING
    created_at: datetime = field(default_factory=utcnow)
    last_updated: datetime = field(default_factory=utcnow)

    @property
    def key(self) -> str:
        return profile_key(self.entity_id, self.entity_type)

    @classmethod
    def create(cls, entity_id: str, entity_type: EntityType) -> "BehavioralProfile":
        """New profile in the learning state"""
        now = utcnow()
        return cls(
            profile_id=f"prof_{entity_type.value}_{entity_id}_{int(now.timestamp() * 1000)}",
            entity_id=entity_id,
            entity_type=entity_type,
            created_at=now,
            last_updated=now,
        )

    def to_dict(self) -> dict:
        return {
            "profile_id": self.profile_id,
            "entity_id": self.entity_id,
            "entity_type": self.entity_type.value,
            "baseline_metrics": {k: m.to_dict() for k, m in self.baseline_metrics.items()},
            "current_metrics": {k: m.to_dict() for k, m in self.current_metrics.items()},
            "risk_score": self.risk_score,
            "confidence": self.confidence,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BehavioralProfile":
        return cls(
            profile_id=data["profile_id"],
            entity_id=data["entity_id"],
            entity_type=EntityType(data["entity_type"]),
            baseline_metrics={
                k: BehavioralMetric.from_dict(m)
                for k, m in (data.get("baseline_metrics") or {}).items()
            },
            current_metrics={
                k: BehavioralMetric.from_dict(m)
                for k, m in (data.get("current_metrics") or {}).items()
            },
            risk_score=float(data.get("risk_score") or 0.0),
            confidence=float(data.get("confidence") or 0.0),
            status=ProfileStatus(data.get("status", ProfileStatus.LEARNING.value)),
            created_at=parse_timestamp(data.get("created_at")),
            last_updated=parse_timestamp(data.get("last_updated")),
        )


def profile_key(entity_id: str, entity_type: EntityType) -> str:
    """Cache key of a profile: entity_type:entity_id"""
    return f"{entity_type.value}:{entity_id}"


@dataclass
class BehavioralEvent:
    """A single observed activity of an entity"""

    id: str
    entity_id: str
    entity_type: EntityType
    event_type: str
    event_data: dict[str, ScalarValue]
    timestamp: datetime
    processed: bool = False
    anomaly_score: Optional[float] = None
    risk_level: Optional[Severity] = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "BehavioralEvent":
        """Build a new, unprocessed event from a caller payload

        Raises:
            ValueError: If a required field is missing or invalid
        """
        missing = [k for k in ("entity_id", "entity_type", "event_type") if not payload.get(k)]
        if missing:
            raise ValueError(f"Event missing required fields: {', '.join(missing)}")

        try:
            entity_type = EntityType(payload["entity_type"])
        except ValueError:
            allowed = ", ".join(t.value for t in EntityType)
            raise ValueError(
                f"Unknown entity type '{payload['entity_type']}'. Expected one of: {allowed}"
            ) from None

        event_data = payload.get("event_data") or {}
        if not isinstance(event_data, dict):
            raise ValueError("event_data must be a mapping")
        for key, value in event_data.items():
            if value is not None and not isinstance(value, ScalarValue):
                raise ValueError(f"event_data['{key}'] must be a scalar value")

        risk_level = payload.get("risk_level")
        return cls(
            id=generate_id("evt"),
            entity_id=str(payload["entity_id"]),
            entity_type=entity_type,
            event_type=str(payload["event_type"]),
            event_data={k: v for k, v in event_data.items() if v is not None},
            timestamp=parse_timestamp(payload.get("timestamp")),
            processed=False,
            anomaly_score=payload.get("anomaly_score"),
            risk_level=Severity(risk_level) if risk_level else None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "entity_type": self.entity_type.value,
            "event_type": self.event_type,
            "event_data": dict(self.event_data),
            "timestamp": self.timestamp.isoformat(),
            "processed": self.processed,
            "anomaly_score": self.anomaly_score,
            "risk_level": self.risk_level.value if self.risk_level else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BehavioralEvent":
        return cls(
            id=data["id"],
            entity_id=data["entity_id"],
            entity_type=EntityType(data["entity_type"]),
            event_type=data["event_type"],
            event_data=dict(data.get("event_data") or {}),
            timestamp=parse_timestamp(data["timestamp"]),
            processed=bool(data.get("processed", False)),
            anomaly_score=data.get("anomaly_score"),
            risk_level=Severity(data["risk_level"]) if data.get("risk_level") else None,
        )


@dataclass
class AnomalyDetection:
    """A finding raised by one of the anomaly detectors"""

    entity_id: str
    anomaly_type: AnomalyType
    severity: Severity
    confidence: float
    description: str
    affected_metrics: list[str]
    detection_method: str
    timestamp: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: generate_id("anom"))
    resolved: bool = False
    false_positive: bool = False
    investigation_notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "anomaly_type": self.anomaly_type.value,
            "severity": self.severity.value,
            "confidence": self.confidence,
            "description": self.description,
            "affected_metrics": list(self.affected_metrics),
            "detection_method": self.detection_method,
            "timestamp": self.timestamp.isoformat(),
            "resolved": self.resolved,
            "false_positive": self.false_positive,
            "investigation_notes": self.investigation_notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AnomalyDetection":
        return cls(
            id=data["id"],
            entity_id=data["entity_id"],
            anomaly_type=AnomalyType(data["anomaly_type"]),
            severity=Severity(data["severity"]),
            confidence=float(data["confidence"]),
            description=data["description"],
            affected_metrics=list(data.get("affected_metrics") or []),
            detection_method=data["detection_method"],
            timestamp=parse_timestamp(data["timestamp"]),
            resolved=bool(data.get("resolved", False)),
            false_positive=bool(data.get("false_positive", False)),
            investigation_notes=data.get("investigation_notes"),
        )

    @staticmethod
    def calculate_severity(score: float) -> Severity:
        """Calculate severity level from a z-score"""
        if score > 4:
            return Severity.CRITICAL
        elif score > 3:
            return Severity.HIGH
        elif score > 2:
            return Severity.MEDIUM
        else:
            return Severity.LOW


@dataclass
class BehavioralInsight:
    """Derived observation over one or more entities"""

    type: InsightType
    title: str
    description: str
    confidence: float
    impact: Impact
    recommendation: str
    affected_entities: list[str] = field(default_factory=list)
    supporting_data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        data["impact"] = self.impact.value
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class LoginPatterns:
    time_of_day: list[int]  # 24 hourly buckets
    day_of_week: list[int]  # Sunday = 0
    frequency: int
    locations: list[str]
    devices: list[str]


@dataclass
class ActivityPatterns:
    session_duration: BehavioralMetric
    page_views: BehavioralMetric
    actions: dict[str, BehavioralMetric]
    data_access: BehavioralMetric


@dataclass
class RiskBehaviors:
    failed_logins: BehavioralMetric
    privilege_escalation: BehavioralMetric
    data_exfiltration: BehavioralMetric
    off_hour_access: BehavioralMetric


@dataclass
class CollaborationPatterns:
    team_interaction: BehavioralMetric
    document_sharing: BehavioralMetric
    communication_frequency: BehavioralMetric


@dataclass
class UserBehaviorAnalysis:
    """Read-side summary of a user's historical events"""

    user_id: str
    login_patterns: LoginPatterns
    activity_patterns: ActivityPatterns
    risk_behaviors: RiskBehaviors
    collaboration_patterns: CollaborationPatterns
    events_analyzed: int = 0
    risk_score: float = 0.0

    def to_dict(self) -> dict:
        data = asdict(self)
        for group in ("activity_patterns", "risk_behaviors", "collaboration_patterns"):
            for name, value in data[group].items():
                if name == "actions":
                    for action in value.values():
                        action["trend"] = action["trend"].value
                else:
                    value["trend"] = value["trend"].value
        return data
