"""
Feature extraction: maps a behavioral event to named numeric features.
"""

from collections.abc import Callable
from datetime import datetime

from .models import BehavioralEvent, ScalarValue

FeatureMap = dict[str, float]


def day_of_week(timestamp: datetime) -> int:
    """Day of week with Sunday = 0 ... Saturday = 6"""
    return (timestamp.weekday() + 1) % 7


def _payload_number(event: BehavioralEvent, key: str, default: float) -> float:
    """Numeric payload value, falling back to default when absent or falsy"""
    value: ScalarValue | None = event.event_data.get(key)
    if not value:
        return float(default)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(
            f"event_data['{key}'] must be numeric for '{event.event_type}' events, got {value!r}"
        ) from None


def _login(event: BehavioralEvent) -> FeatureMap:
    return {
        "login_frequency": 1.0,
        "login_hour": float(event.timestamp.hour),
        "login_day_of_week": float(day_of_week(event.timestamp)),
    }


def _page_view(event: BehavioralEvent) -> FeatureMap:
    return {"page_views": 1.0, "session_activity": 1.0}


def _risk_access(event: BehavioralEvent) -> FeatureMap:
    return {
        "risk_interactions": 1.0,
        "data_access": _payload_number(event, "sensitivity", 1),
    }


def _compliance_action(event: BehavioralEvent) -> FeatureMap:
    return {
        "compliance_activity": 1.0,
        "compliance_score": _payload_number(event, "score", 0),
    }


def _failed_login(event: BehavioralEvent) -> FeatureMap:
    return {"failed_logins": 1.0, "security_events": 1.0}


def _privilege_escalation(event: BehavioralEvent) -> FeatureMap:
    return {
        "privilege_events": 1.0,
        "security_risk": _payload_number(event, "risk_level", 5),
    }


FEATURE_EXTRACTORS: dict[str, Callable[[BehavioralEvent], FeatureMap]] = {
    "login": _login,
    "page_view": _page_view,
    "risk_access": _risk_access,
    "compliance_action": _compliance_action,
    "failed_login": _failed_login,
    "privilege_escalation": _privilege_escalation,
}


def extract_features(event: BehavioralEvent) -> FeatureMap:
    """Extract the feature set of an event

    Unmapped event types yield a single general_activity feature.
    """
    extractor = FEATURE_EXTRACTORS.get(event.event_type)
    if extractor is None:
        return {"general_activity": 1.0}
    return extractor(event)
