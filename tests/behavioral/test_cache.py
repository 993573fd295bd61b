"""
Tests for the Redis profile mirror.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from src.behavioral.cache import RedisProfileCache
from src.behavioral.models import BehavioralProfile, EntityType


@pytest.fixture
def mock_redis():
    with patch("src.behavioral.cache.redis.Redis") as mock_redis_class:
        client = MagicMock()
        mock_redis_class.return_value = client
        client.redis_class = mock_redis_class
        yield client


@pytest.fixture
def cache(config, mock_redis):
    return RedisProfileCache(config)


class TestRedisProfileCache:
    """Tests for RedisProfileCache."""

    def test_initialization(self, cache, config, mock_redis):
        mock_redis.redis_class.assert_called_once_with(
            host=config.redis_host,
            port=config.redis_port,
            db=config.redis_db,
            password=config.redis_password,
            decode_responses=True,
        )
        mock_redis.ping.assert_called_once()

    def test_initialization_failure(self, config, mock_redis):
        mock_redis.ping.side_effect = Exception("Connection refused")

        with pytest.raises(Exception, match="Connection refused"):
            RedisProfileCache(config)

    def test_save_profile(self, cache, config, mock_redis):
        profile = BehavioralProfile.create("alice", EntityType.USER)

        assert cache.save_profile(profile) is True

        key, ttl, data = mock_redis.setex.call_args[0]
        assert key == "behavioral:profile:user:alice"
        assert ttl == config.cache_ttl_seconds
        assert json.loads(data)["profile_id"] == profile.profile_id

    def test_save_profile_failure(self, cache, mock_redis):
        mock_redis.setex.side_effect = Exception("READONLY")

        assert cache.save_profile(BehavioralProfile.create("alice", EntityType.USER)) is False

    def test_load_profile(self, cache, mock_redis):
        profile = BehavioralProfile.create("web", EntityType.APPLICATION)
        mock_redis.get.return_value = json.dumps(profile.to_dict())

        assert cache.load_profile("web", EntityType.APPLICATION) == profile
        mock_redis.get.assert_called_once_with("behavioral:profile:application:web")

    def test_load_missing_profile(self, cache, mock_redis):
        mock_redis.get.return_value = None
        assert cache.load_profile("web", EntityType.APPLICATION) is None

    def test_load_corrupt_profile(self, cache, mock_redis):
        mock_redis.get.return_value = "{not json"
        assert cache.load_profile("web", EntityType.APPLICATION) is None

    def test_load_corrupt_profile_is_evicted(self, cache, mock_redis):
        mock_redis.get.return_value = json.dumps({"entity_id": "web"})

        assert cache.load_profile("web", EntityType.APPLICATION) is None
        mock_redis.delete.assert_called_once_with("behavioral:profile:application:web")

    def test_load_profile_when_redis_unreachable(self, cache, mock_redis):
        mock_redis.get.side_effect = Exception("Connection reset by peer")

        assert cache.load_profile("web", EntityType.APPLICATION) is None
        mock_redis.delete.assert_not_called()


class TestMirrorWarmUp:
    """Tests for pipelined mirroring of rehydrated profiles."""

    def test_save_profiles(self, cache, config, mock_redis):
        pipe = mock_redis.pipeline.return_value
        profiles = [
            BehavioralProfile.create("alice", EntityType.USER),
            BehavioralProfile.create("srv-1", EntityType.SYSTEM),
        ]

        assert cache.save_profiles(profiles) == 2

        mock_redis.pipeline.assert_called_once_with(transaction=False)
        keys = [c.args[0] for c in pipe.setex.call_args_list]
        assert keys == ["behavioral:profile:user:alice", "behavioral:profile:system:srv-1"]
        assert all(c.args[1] == config.cache_ttl_seconds for c in pipe.setex.call_args_list)
        pipe.execute.assert_called_once()

    def test_save_no_profiles(self, cache, mock_redis):
        assert cache.save_profiles([]) == 0
        mock_redis.pipeline.return_value.execute.assert_not_called()

    def test_save_profiles_failure(self, cache, mock_redis):
        mock_redis.pipeline.return_value.execute.side_effect = Exception("OOM")

        assert cache.save_profiles([BehavioralProfile.create("alice", EntityType.USER)]) == 0
