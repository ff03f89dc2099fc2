"""
Two-tier cache manager

- L1: in-process dict (fastest, bounded by CACHE_MEMORY_MAX)
- L2: Redis (shared across workers), only when REDIS_URL is set

On get: L1 -> L2 (backfills L1) -> None
On set: L1 and L2

Cache failures are logged and never raised to callers: a broken cache
behaves like an empty one.
"""
import base64
import fnmatch
import json
import logging
import time
import zlib
from typing import Any, Callable, Dict, Optional, Tuple

import redis

from cromwell.core.config import settings

logger = logging.getLogger(__name__)

# Marks compressed L2 payloads
COMPRESSED_MARKER = "z:"

# Share of L1 entries dropped when it is full
EVICTION_RATIO = 0.1


class CacheManager:
    """
    Multi-level cache

    Example:
        cache = get_cache_manager()
        products = cache.get_or_set("list", load_products, namespace="products", ttl=600)
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        key_prefix: Optional[str] = None,
        memory_max: Optional[int] = None,
        default_ttl: Optional[int] = None,
        enable_compression: Optional[bool] = None,
        redis_client: Optional[redis.Redis] = None,
    ):
        self.key_prefix = key_prefix if key_prefix is not None else settings.REDIS_PREFIX
        self.memory_max = memory_max or settings.CACHE_MEMORY_MAX
        self.default_ttl = default_ttl or settings.CACHE_DEFAULT_TTL
        self.enable_compression = (
            settings.CACHE_COMPRESSION if enable_compression is None else enable_compression
        )

        # {key: (value, expiry timestamp, approximate size)}
        self._memory: Dict[str, Tuple[Any, float, int]] = {}
        self.memory_stats = {"hits": 0, "misses": 0, "sets": 0}
        self.redis_stats = {"hits": 0, "misses": 0, "sets": 0}

        self.redis_client = redis_client
        if self.redis_client is None:
            self._init_redis(redis_url if redis_url is not None else settings.REDIS_URL)

    def _init_redis(self, redis_url: Optional[str]):
        if not redis_url:
            logger.warning("Redis configuration not found. Running with memory cache only.")
            return

        try:
            client = redis.Redis.from_url(redis_url, decode_responses=True)
            client.ping()
            self.redis_client = client
            logger.info("Connected to Redis")
        except redis.RedisError as e:
            logger.error(f"Failed to initialize Redis: {e}")
            self.redis_client = None

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def build_cache_key(key: str, namespace: Optional[str] = None) -> str:
        return f"{namespace}:{key}" if namespace else key

    def _redis_key(self, cache_key: str) -> str:
        return f"{self.key_prefix}{cache_key}"

    # ------------------------------------------------------------------
    # L1
    # ------------------------------------------------------------------

    def _get_from_memory(self, cache_key: str) -> Tuple[bool, Any]:
        cached = self._memory.get(cache_key)
        if cached is None:
            return False, None

        value, expiry, _ = cached
        if time.time() > expiry:
            del self._memory[cache_key]
            return False, None
        return True, value

    def _set_in_memory(self, cache_key: str, value: Any, ttl: int):
        if cache_key not in self._memory and len(self._memory) >= self.memory_max:
            self._evict_memory()

        self._memory[cache_key] = (value, time.time() + ttl, self._calculate_size(value))

    def _evict_memory(self) -> int:
        """Drop the entries closest to expiry (10%, at least one)"""
        evict_count = max(1, int(len(self._memory) * EVICTION_RATIO))
        by_expiry = sorted(self._memory.items(), key=lambda item: item[1][1])
        for key, _ in by_expiry[:evict_count]:
            del self._memory[key]

        logger.debug(f"Evicted {evict_count} L1 cache entries")
        return evict_count

    @staticmethod
    def _calculate_size(value: Any) -> int:
        try:
            return len(json.dumps(value, default=str)) * 2
        except (TypeError, ValueError):
            return 0

    # ------------------------------------------------------------------
    # L2
    # ------------------------------------------------------------------

    def _serialize(self, value: Any, compress: bool) -> str:
        serialized = json.dumps(value, default=str)
        if compress and self.enable_compression:
            packed = base64.b64encode(zlib.compress(serialized.encode("utf-8"))).decode("ascii")
            return f"{COMPRESSED_MARKER}{packed}"
        return serialized

    @staticmethod
    def _deserialize(payload: str) -> Any:
        if payload.startswith(COMPRESSED_MARKER):
            raw = zlib.decompress(base64.b64decode(payload[len(COMPRESSED_MARKER):]))
            return json.loads(raw.decode("utf-8"))
        return json.loads(payload)

    def _get_from_redis(self, cache_key: str) -> Tuple[bool, Any]:
        payload = self.redis_client.get(self._redis_key(cache_key))
        if payload is None:
            return False, None

        try:
            return True, self._deserialize(payload)
        except (ValueError, zlib.error) as e:
            logger.error(f"Error parsing Redis value for key {cache_key}: {e}")
            return False, None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, key: str, namespace: Optional[str] = None, ttl: Optional[int] = None) -> Any:
        """Cached value or None"""
        cache_key = self.build_cache_key(key, namespace)

        try:
            found, value = self._get_from_memory(cache_key)
            if found:
                self.memory_stats["hits"] += 1
                return value
            self.memory_stats["misses"] += 1

            if self.redis_client is not None:
                found, value = self._get_from_redis(cache_key)
                if found:
                    self.redis_stats["hits"] += 1
                    self._set_in_memory(cache_key, value, ttl or self.default_ttl)
                    return value
                self.redis_stats["misses"] += 1

            return None
        except redis.RedisError as e:
            logger.error(f"Error getting cache key {cache_key}: {e}")
            return None

    def set(
        self,
        key: str,
        value: Any,
        namespace: Optional[str] = None,
        ttl: Optional[int] = None,
        compress: bool = False,
    ):
        cache_key = self.build_cache_key(key, namespace)
        ttl = ttl or self.default_ttl

        try:
            self._set_in_memory(cache_key, value, ttl)
            self.memory_stats["sets"] += 1

            if self.redis_client is not None:
                self.redis_client.setex(self._redis_key(cache_key), ttl, self._serialize(value, compress))
                self.redis_stats["sets"] += 1
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.error(f"Error setting cache key {cache_key}: {e}")

    def delete(self, key: str, namespace: Optional[str] = None):
        cache_key = self.build_cache_key(key, namespace)

        self._memory.pop(cache_key, None)
        if self.redis_client is not None:
            try:
                self.redis_client.delete(self._redis_key(cache_key))
            except redis.RedisError as e:
                logger.error(f"Error deleting cache key {cache_key}: {e}")

    def delete_pattern(self, pattern: str, namespace: Optional[str] = None) -> int:
        """Delete keys matching a Redis-style glob (`*`, `?`, `[...]`) in both tiers"""
        cache_pattern = self.build_cache_key(pattern, namespace)

        memory_keys = [key for key in self._memory if fnmatch.fnmatchcase(key, cache_pattern)]
        for key in memory_keys:
            del self._memory[key]
        deleted = len(memory_keys)

        if self.redis_client is not None:
            try:
                redis_keys = list(self.redis_client.scan_iter(match=self._redis_key(cache_pattern)))
                if redis_keys:
                    self.redis_client.delete(*redis_keys)
                deleted = max(deleted, len(redis_keys))
            except redis.RedisError as e:
                logger.error(f"Error deleting cache pattern {cache_pattern}: {e}")

        logger.debug(f"Deleted cache pattern {cache_pattern}")
        return deleted

    def get_or_set(
        self,
        key: str,
        callback: Callable[[], Any],
        namespace: Optional[str] = None,
        ttl: Optional[int] = None,
        compress: bool = False,
    ) -> Any:
        """Cached value, or the callback's result (then cached)"""
        cached = self.get(key, namespace=namespace, ttl=ttl)
        if cached is not None:
            return cached

        value = callback()
        self.set(key, value, namespace=namespace, ttl=ttl, compress=compress)
        return value

    def flush(self):
        """Clear L1 and every prefixed key of L2"""
        self._memory.clear()

        if self.redis_client is not None:
            try:
                keys = list(self.redis_client.scan_iter(match=f"{self.key_prefix}*"))
                if keys:
                    self.redis_client.delete(*keys)
            except redis.RedisError as e:
                logger.error(f"Error flushing caches: {e}")
                return

        logger.info("All caches flushed")

    def cleanup_expired(self) -> int:
        now = time.time()
        expired = [key for key, (_, expiry, _) in self._memory.items() if now > expiry]
        for key in expired:
            del self._memory[key]
        return len(expired)

    @staticmethod
    def _hit_rate(stats: Dict[str, int]) -> float:
        lookups = stats["hits"] + stats["misses"]
        return stats["hits"] / lookups if lookups else 0.0

    def _redis_connected(self) -> bool:
        try:
            return bool(self.redis_client.ping())
        except redis.RedisError:
            return False

    def get_stats(self) -> Dict[str, Any]:
        return {
            "memory": {
                **self.memory_stats,
                "size": len(self._memory),
                "hit_rate": self._hit_rate(self.memory_stats),
            },
            "redis": {
                **self.redis_stats,
                "connected": self._redis_connected(),
                "hit_rate": self._hit_rate(self.redis_stats),
            } if self.redis_client is not None else None,
        }


# Global cache instance
_cache_manager: Optional[CacheManager] = None


def get_cache_manager() -> CacheManager:
    """Process-wide cache manager, created on first use"""
    global _cache_manager
    if _cache_manager is None:
        _cache_manager = CacheManager()
    return _cache_manager
