"""
Read-side analysis of a user's historical events.

Works on stored events only and never touches live profiles.
"""

from datetime import datetime, timedelta
from typing import Optional

import pandas as pd
import structlog

from .errors import InsufficientDataError
from .metrics import metric_from_value, metric_from_values, new_metric, update_metric
from .models import (
    ActivityPatterns,
    BehavioralConfig,
    BehavioralEvent,
    CollaborationPatterns,
    EntityType,
    LoginPatterns,
    RiskBehaviors,
    UserBehaviorAnalysis,
    utcnow,
)
from .store import BehavioralStore

logger = structlog.get_logger(__name__)

OFF_HOURS_START = 6  # hour < 6
OFF_HOURS_END = 22  # hour > 22


def events_to_frame(events: list[BehavioralEvent]) -> pd.DataFrame:
    """Tabulate events with UTC hour and Sunday-based day of week"""
    frame = pd.DataFrame(
        [
            {
                "event_type": event.event_type,
                "timestamp": event.timestamp,
                "event_data": event.event_data,
            }
            for event in events
        ],
        columns=["event_type", "timestamp", "event_data"],
    )
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
    frame["hour"] = frame["timestamp"].dt.hour
    frame["day_of_week"] = (frame["timestamp"].dt.dayofweek + 1) % 7
    return frame


def _distinct(values) -> list[str]:
    """Truthy values in first-seen order"""
    return list(dict.fromkeys(str(v) for v in values if v))


def calculate_user_risk_score(analysis: UserBehaviorAnalysis) -> float:
    """Weighted sum of risk counters plus activity penalties, clamped to [0, 10]"""
    risk = analysis.risk_behaviors
    score = (
        risk.failed_logins.value * 2
        + risk.privilege_escalation.value * 5
        + risk.data_exfiltration.value * 10
        + risk.off_hour_access.value * 0.5
    )

    activity = analysis.activity_patterns
    if activity.session_duration.value > 12:
        score += 2
    if activity.data_access.value > 100:
        score += 1

    return max(0.0, min(10.0, score))


class AnalyticsReader:
    """Builds UserBehaviorAnalysis summaries from the durable event log"""

    def __init__(self, store: BehavioralStore, config: BehavioralConfig):
        self.store = store
        self.config = config

    def analyze_user(
        self, user_id: str, period_days: int = 30, now: Optional[datetime] = None
    ) -> UserBehaviorAnalysis:
        """Analyze a user's events over the trailing period

        Raises:
            InsufficientDataError: If fewer than min_analysis_events events exist
        """
        since = (now or utcnow()) - timedelta(days=period_days)
        events = self.store.list_events(user_id, EntityType.USER, since)

        if len(events) < self.config.min_analysis_events:
            raise InsufficientDataError(
                f"Insufficient data for behavioral analysis: {len(events)} events, "
                f"{self.config.min_analysis_events} required"
            )

        frame = events_to_frame(events)
        counts = frame["event_type"].value_counts()

        analysis = UserBehaviorAnalysis(
            user_id=user_id,
            login_patterns=self._login_patterns(frame),
            activity_patterns=self._activity_patterns(frame, counts),
            risk_behaviors=self._risk_behaviors(frame, counts),
            collaboration_patterns=self._collaboration_patterns(counts),
            events_analyzed=len(events),
        )
        analysis.risk_score = calculate_user_risk_score(analysis)

        logger.info(
            "User behavior analysis completed",
            user_id=user_id,
            events=len(events),
            risk_score=round(analysis.risk_score, 2),
        )
        return analysis

    @staticmethod
    def _count(counts: pd.Series, event_type: str) -> int:
        return int(counts.get(event_type, 0))

    def _login_patterns(self, frame: pd.DataFrame) -> LoginPatterns:
        logins = frame[frame["event_type"] == "login"]
        hours = logins["hour"].value_counts().reindex(range(24), fill_value=0)
        days = logins["day_of_week"].value_counts().reindex(range(7), fill_value=0)

        return LoginPatterns(
            time_of_day=[int(v) for v in hours.tolist()],
            day_of_week=[int(v) for v in days.tolist()],
            frequency=len(logins),
            locations=_distinct(data.get("location") for data in logins["event_data"]),
            devices=_distinct(data.get("device") for data in logins["event_data"]),
        )

    def _activity_patterns(self, frame: pd.DataFrame, counts: pd.Series) -> ActivityPatterns:
        durations = [
            float(data["sessionDuration"])
            for data in frame["event_data"]
            if data.get("sessionDuration")
        ]

        actions = {}
        for event_type in frame["event_type"]:
            if event_type not in actions:
                actions[event_type] = new_metric(event_type)
            update_metric(actions[event_type], 1)

        return ActivityPatterns(
            session_duration=metric_from_values("sessionDuration", durations),
            page_views=metric_from_value("pageViews", self._count(counts, "page_view")),
            actions=actions,
            data_access=metric_from_value("dataAccess", self._count(counts, "data_access")),
        )

    def _risk_behaviors(self, frame: pd.DataFrame, counts: pd.Series) -> RiskBehaviors:
        off_hours = (frame["hour"] < OFF_HOURS_START) | (frame["hour"] > OFF_HOURS_END)

        return RiskBehaviors(
            failed_logins=metric_from_value("failedLogins", self._count(counts, "failed_login")),
            privilege_escalation=metric_from_value(
                "privilegeEscalation", self._count(counts, "privilege_escalation")
            ),
            data_exfiltration=metric_from_value(
                "dataExfiltration", self._count(counts, "data_exfiltration")
            ),
            off_hour_access=metric_from_value("offHourAccess", int(off_hours.sum())),
        )

    def _collaboration_patterns(self, counts: pd.Series) -> CollaborationPatterns:
        return CollaborationPatterns(
            team_interaction=metric_from_value(
                "teamInteraction", self._count(counts, "team_interaction")
            ),
            document_sharing=metric_from_value(
                "documentSharing", self._count(counts, "document_sharing")
            ),
            communication_frequency=metric_from_value(
                "communicationFrequency", self._count(counts, "communication")
            ),
        )
