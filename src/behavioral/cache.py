"""
Redis mirror of behavioral profiles.

Read-side processes fetch a recent profile here without touching PostgreSQL.
Entries expire after `cache_ttl_seconds`; PostgreSQL stays the source of truth,
so a missing or unreadable entry only means a fallback to the store.
"""

import json
from collections.abc import Iterable
from typing import Optional

import redis
import structlog

from .models import BehavioralConfig, BehavioralProfile, EntityType, profile_key

logger = structlog.get_logger(__name__)

KEY_PREFIX = "behavioral:profile"


def mirror_key(entity_id: str, entity_type: EntityType) -> str:
    return f"{KEY_PREFIX}:{profile_key(entity_id, entity_type)}"


class RedisProfileCache:
    """Expiring JSON copies of profiles keyed by entity"""

    def __init__(self, config: BehavioralConfig):
        self.ttl = config.cache_ttl_seconds
        try:
            self.redis = redis.Redis(
                host=config.redis_host,
                port=config.redis_port,
                db=config.redis_db,
                password=config.redis_password,
                decode_responses=True,
            )
            self.redis.ping()
        except Exception as e:
            logger.error("Profile mirror unavailable", host=config.redis_host, error=str(e))
            raise
        logger.info(
            "Profile mirror connected",
            host=config.redis_host,
            port=config.redis_port,
            ttl_seconds=self.ttl,
        )

    def save_profile(self, profile: BehavioralProfile) -> bool:
        key = mirror_key(profile.entity_id, profile.entity_type)
        try:
            self.redis.setex(key, self.ttl, json.dumps(profile.to_dict()))
        except Exception as e:
            logger.error("Profile mirror write failed", key=key, error=str(e))
            return False
        logger.debug("Profile mirrored", key=key, status=profile.status.value)
        return True

    def save_profiles(self, profiles: Iterable[BehavioralProfile]) -> int:
        """Mirror many profiles in one pipelined round trip

        Returns:
            Number of profiles written, 0 if the pipeline failed
        """
        pipe = self.redis.pipeline(transaction=False)
        count = 0
        for profile in profiles:
            key = mirror_key(profile.entity_id, profile.entity_type)
            pipe.setex(key, self.ttl, json.dumps(profile.to_dict()))
            count += 1
        if count == 0:
            return 0
        try:
            pipe.execute()
        except Exception as e:
            logger.error("Profile mirror warm-up failed", profiles=count, error=str(e))
            return 0
        logger.info("Profile mirror warmed", profiles=count)
        return count

    def load_profile(self, entity_id: str, entity_type: EntityType) -> Optional[BehavioralProfile]:
        """Mirrored profile, or None on a miss or an unreachable Redis"""
        key = mirror_key(entity_id, entity_type)
        try:
            data = self.redis.get(key)
        except Exception as e:
            logger.error("Profile mirror read failed", key=key, error=str(e))
            return None
        if data is None:
            return None

        try:
            return BehavioralProfile.from_dict(json.loads(data))
        except (ValueError, KeyError, TypeError) as e:
            # Unreadable entries are evicted so the next write replaces them
            logger.warning("Evicting unreadable mirrored profile", key=key, error=str(e))
            self._evict(key)
            return None

    def _evict(self, key: str) -> None:
        try:
            self.redis.delete(key)
        except Exception as e:
            logger.error("Profile mirror eviction failed", key=key, error=str(e))
