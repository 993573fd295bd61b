"""
Payload factories for common user events.

Each factory returns a dict accepted by
BehavioralAnalysisService.record_event.
"""

from typing import Any, Optional

from .models import AnomalyDetection, EntityType, Severity, utcnow


def _user_event(
    user_id: str | int,
    event_type: str,
    event_data: dict[str, Any],
    risk_level: Optional[Severity] = None,
) -> dict[str, Any]:
    payload = {
        "entity_id": str(user_id),
        "entity_type": EntityType.USER.value,
        "event_type": event_type,
        "event_data": event_data,
        "timestamp": utcnow().isoformat(),
    }
    if risk_level is not None:
        payload["risk_level"] = risk_level.value
    return payload


def login_event(
    user_id: str | int, location: Optional[str] = None, device: Optional[str] = None
) -> dict[str, Any]:
    return _user_event(user_id, "login", {"location": location, "device": device})


def failed_login_event(user_id: str | int, reason: Optional[str] = None) -> dict[str, Any]:
    return _user_event(user_id, "failed_login", {"reason": reason}, risk_level=Severity.MEDIUM)


def risk_access_event(user_id: str | int, risk_id: str | int, action: str) -> dict[str, Any]:
    return _user_event(
        user_id, "risk_access", {"riskId": risk_id, "action": action, "sensitivity": 3}
    )


def privilege_escalation_event(user_id: str | int, from_role: str, to_role: str) -> dict[str, Any]:
    return _user_event(
        user_id,
        "privilege_escalation",
        {"fromRole": from_role, "toRole": to_role, "risk_level": 7},
        risk_level=Severity.HIGH,
    )


def classify_risk_level(anomaly_score: float) -> Severity:
    """Map an anomaly score onto the severity scale used for findings"""
    return AnomalyDetection.calculate_severity(anomaly_score)
