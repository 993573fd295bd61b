"""
Profile lifecycle management.

The ProfileManager is the single writer of BehavioralProfile state. Profiles
are cached in memory by entity_type:entity_id and written through to the
durable store (and the optional Redis mirror) after every mutation.
"""

from typing import Optional

import structlog

from .cache import RedisProfileCache
from .features import FeatureMap
from .metrics import freeze_baseline, new_metric, update_metric
from .models import (
    BehavioralConfig,
    BehavioralProfile,
    EntityType,
    ProfileStatus,
    profile_key,
    utcnow,
)
from .store import BehavioralStore

logger = structlog.get_logger(__name__)


class ProfileManager:
    """Owns creation, update, caching and persistence of behavioral profiles"""

    def __init__(
        self,
        store: BehavioralStore,
        config: BehavioralConfig,
        cache: Optional[RedisProfileCache] = None,
    ):
        self.store = store
        self.config = config
        self.cache = cache
        self._profiles: dict[str, BehavioralProfile] = {}

    def __len__(self) -> int:
        return len(self._profiles)

    def load_all(self) -> int:
        """Rehydrate the in-memory cache from durable storage

        Also warms the Redis mirror when one is configured.

        Returns:
            Number of profiles loaded
        """
        profiles = self.store.list_profiles()
        for profile in profiles:
            self._profiles[profile.key] = profile
        if self.cache is not None:
            self.cache.save_profiles(profiles)
        logger.info("Behavioral profiles loaded", count=len(profiles))
        return len(profiles)

    def get(self, entity_id: str, entity_type: EntityType) -> Optional[BehavioralProfile]:
        """Look up a profile in memory, then the Redis mirror, then the store"""
        key = profile_key(entity_id, entity_type)
        profile = self._profiles.get(key)
        if profile is not None:
            return profile

        if self.cache is not None:
            profile = self.cache.load_profile(entity_id, entity_type)
        if profile is None:
            profile = self.store.get_profile(entity_id, entity_type)
        if profile is not None:
            self._profiles[key] = profile
        return profile

    def get_or_create(self, entity_id: str, entity_type: EntityType) -> BehavioralProfile:
        profile = self.get(entity_id, entity_type)
        if profile is None:
            profile = BehavioralProfile.create(entity_id, entity_type)
            self._profiles[profile.key] = profile
            logger.info(
                "Behavioral profile created",
                entity_id=entity_id,
                entity_type=entity_type.value,
                profile_id=profile.profile_id,
            )
        return profile

    def fold(self, profile: BehavioralProfile, features: FeatureMap) -> None:
        """Apply one event's features to a profile"""
        for metric_name, value in features.items():
            metric = profile.current_metrics.get(metric_name)
            if metric is None:
                metric = profile.current_metrics[metric_name] = new_metric(metric_name)

            update_metric(metric, value, alpha=self.config.ema_alpha)
            freeze_baseline(profile, metric_name, self.config.min_data_points)

        profile.risk_score = self.calculate_risk_score(profile)
        profile.confidence = self.calculate_confidence(profile)
        profile.last_updated = utcnow()

        if profile.status == ProfileStatus.LEARNING and self.has_completed_learning(profile):
            profile.status = ProfileStatus.ACTIVE
            logger.info(
                "Profile learning completed",
                profile_key=profile.key,
                confidence=round(profile.confidence, 3),
            )

    def persist(self, profile: BehavioralProfile) -> bool:
        """Write a profile through to the store and the Redis mirror

        The in-memory copy stays authoritative when the store write fails.
        """
        self._profiles[profile.key] = profile
        saved = self.store.upsert_profile(profile)
        if not saved:
            logger.warning("Profile write-through failed", profile_key=profile.key)
        if self.cache is not None:
            self.cache.save_profile(profile)
        return saved

    def calculate_risk_score(self, profile: BehavioralProfile) -> float:
        """Mean anomaly score over current metrics, anomalous ones weighted double"""
        if not profile.current_metrics:
            return 0.0

        total = 0.0
        for metric in profile.current_metrics.values():
            if metric.anomaly_score > self.config.statistical_threshold:
                total += metric.anomaly_score * 2
            else:
                total += metric.anomaly_score

        return max(0.0, min(10.0, total / len(profile.current_metrics)))

    def calculate_confidence(self, profile: BehavioralProfile) -> float:
        total_data_points = sum(m.data_points for m in profile.current_metrics.values())
        return min(1.0, total_data_points / (self.config.min_data_points * 5))

    def has_completed_learning(self, profile: BehavioralProfile) -> bool:
        sufficient = [
            m
            for m in profile.current_metrics.values()
            if m.data_points >= self.config.min_data_points
        ]
        return len(sufficient) >= self.config.min_learning_metrics
