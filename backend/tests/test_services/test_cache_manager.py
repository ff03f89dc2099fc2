"""
Unit tests for the two-tier CacheManager

L1 runs for real; L2 runs against fakeredis so key TTLs and SCAN globbing
behave the way a Redis server does.
"""
import time
from unittest.mock import MagicMock, patch

import fakeredis
import pytest
import redis

from cromwell.services.cache_manager import COMPRESSED_MARKER, CacheManager


@pytest.fixture
def memory_cache():
    return CacheManager(redis_url="", key_prefix="test:", memory_max=10, default_ttl=60)


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def two_tier_cache(redis_client):
    return CacheManager(key_prefix="test:", memory_max=10, default_ttl=60, redis_client=redis_client)


class TestMemoryTier:

    def test_set_and_get(self, memory_cache):
        memory_cache.set("list", [1, 2, 3], namespace="product")

        assert memory_cache.get("list", namespace="product") == [1, 2, 3]
        assert memory_cache.get("list") is None
        assert memory_cache.memory_stats["hits"] == 1
        assert memory_cache.memory_stats["misses"] == 1

    def test_expired_entry_is_a_miss(self, memory_cache):
        memory_cache.set("key", "value", ttl=1)

        with patch("cromwell.services.cache_manager.time.time", return_value=time.time() + 5):
            assert memory_cache.get("key") is None

        assert "key" not in memory_cache._memory

    def test_full_memory_evicts_earliest_expiry(self, memory_cache):
        for i in range(10):
            memory_cache.set(f"k{i}", i, ttl=100 + i)

        memory_cache.set("new", "value", ttl=500)

        assert len(memory_cache._memory) == 10
        assert "k0" not in memory_cache._memory
        assert memory_cache.get("new") == "value"

    def test_overwriting_existing_key_does_not_evict(self, memory_cache):
        for i in range(10):
            memory_cache.set(f"k{i}", i)

        memory_cache.set("k5", "updated")

        assert len(memory_cache._memory) == 10
        assert memory_cache.get("k0") == 0

    def test_delete_pattern_matches_whole_key(self, memory_cache):
        memory_cache.set("1", "a", namespace="product")
        memory_cache.set("2", "b", namespace="product")
        memory_cache.set("1", "c", namespace="productx")

        deleted = memory_cache.delete_pattern("product:*")

        assert deleted == 2
        assert memory_cache.get("1", namespace="productx") == "c"

    def test_delete_pattern_question_mark_matches_one_character(self, memory_cache):
        memory_cache.set("1", "a", namespace="product")
        memory_cache.set("12", "b", namespace="product")

        deleted = memory_cache.delete_pattern("product:?")

        assert deleted == 1
        assert memory_cache.get("12", namespace="product") == "b"
        assert memory_cache.get("1", namespace="product") is None

    def test_get_or_set_calls_callback_once(self, memory_cache):
        callback = MagicMock(return_value={"id": 1})

        assert memory_cache.get_or_set("p1", callback, namespace="product") == {"id": 1}
        assert memory_cache.get_or_set("p1", callback, namespace="product") == {"id": 1}
        callback.assert_called_once()

    def test_cleanup_expired(self, memory_cache):
        memory_cache.set("short", 1, ttl=1)
        memory_cache.set("long", 2, ttl=1000)

        with patch("cromwell.services.cache_manager.time.time", return_value=time.time() + 10):
            assert memory_cache.cleanup_expired() == 1

        assert list(memory_cache._memory) == ["long"]

    def test_stats_without_lookups(self, memory_cache):
        stats = memory_cache.get_stats()

        assert stats["memory"]["hit_rate"] == 0.0
        assert stats["memory"]["size"] == 0
        assert stats["redis"] is None


class TestRedisTier:

    def test_set_writes_prefixed_key(self, two_tier_cache, redis_client):
        two_tier_cache.set("1", {"name": "shirt"}, namespace="product")

        assert redis_client.get("test:product:1") == '{"name": "shirt"}'

    def test_set_applies_ttl_to_redis_key(self, two_tier_cache, redis_client):
        two_tier_cache.set("1", {"name": "shirt"}, namespace="product")
        two_tier_cache.set("2", {"name": "hat"}, namespace="product", ttl=5)

        assert 0 < redis_client.ttl("test:product:1") <= 60
        assert 0 < redis_client.ttl("test:product:2") <= 5

    def test_delete_pattern_uses_same_glob_in_both_tiers(self, two_tier_cache, redis_client):
        for key in ("1", "2", "12"):
            two_tier_cache.set(key, key, namespace="product")

        deleted = two_tier_cache.delete_pattern("product:?")

        assert deleted == 2
        assert "product:12" in two_tier_cache._memory
        assert redis_client.keys("test:product:*") == ["test:product:12"]

    def test_compressed_payload_round_trips(self, two_tier_cache, redis_client):
        value = {"html": "<div>" * 200}
        two_tier_cache.set("page", value, namespace="static", compress=True)

        assert redis_client.get("test:static:page").startswith(COMPRESSED_MARKER)

        two_tier_cache._memory.clear()
        assert two_tier_cache.get("page", namespace="static") == value

    def test_l2_hit_backfills_memory(self, two_tier_cache, redis_client):
        redis_client.set("test:product:9", '{"id": 9}')

        assert two_tier_cache.get("9", namespace="product") == {"id": 9}
        assert "product:9" in two_tier_cache._memory
        assert two_tier_cache.redis_stats["hits"] == 1

    def test_broken_redis_behaves_like_empty_cache(self):
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("down")
        cache = CacheManager(key_prefix="test:", redis_client=client)

        assert cache.get("missing") is None

    def test_flush_only_deletes_prefixed_keys(self, two_tier_cache, redis_client):
        two_tier_cache.set("1", "a", namespace="product")
        redis_client.set("other:key", "kept")

        two_tier_cache.flush()

        assert redis_client.keys("*") == ["other:key"]
        assert two_tier_cache._memory == {}

    def test_stats_report_redis(self, two_tier_cache):
        two_tier_cache.get("missing")

        stats = two_tier_cache.get_stats()

        assert stats["redis"]["connected"] is True
        assert stats["redis"]["misses"] == 1
        assert stats["redis"]["hit_rate"] == 0.0

    def test_unreachable_redis_url_falls_back_to_memory(self):
        with patch("cromwell.services.cache_manager.redis.Redis.from_url") as from_url:
            from_url.return_value.ping.side_effect = redis.ConnectionError("refused")
            cache = CacheManager(redis_url="redis://localhost:6390/0")

        assert cache.redis_client is None
        cache.set("k", "v")
        assert cache.get("k") == "v"
