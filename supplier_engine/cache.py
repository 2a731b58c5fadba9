"""
Redis Caching Layer.

Cache-aside store for composite rating lookups during fan-out. Falls back
to a process-local in-memory store (with TTLs) if Redis is unreachable.
Every consumer must stay correct when the cache always misses.
"""

import json
import time
import logging
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as aioredis

from supplier_engine.ports import CachePort

logger = logging.getLogger(__name__)


class CacheConfig:
    """Cache configuration."""

    RATING_TTL = 300         # 5 minutes

    REDIS_MAX_CONNECTIONS = 10

    MEMORY_SWEEP_INTERVAL = 60  # seconds between expired-entry sweeps

    PREFIX_RATING = 'rating:supplier:'


class CacheClient:
    """
    Unified cache interface.

    Uses Redis when connected, otherwise an in-memory dict. The client is
    created once at startup and shared by every component of the process.
    """

    def __init__(self, redis_url: Optional[str] = None, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            redis_url: Redis URL; None keeps the in-memory backend
            clock: Monotonic clock used for in-memory expiry
        """
        self.redis_url = redis_url
        self._redis: Optional[aioredis.Redis] = None
        self._connected = False
        self._clock = clock
        self._memory: Dict[str, Tuple[Any, float]] = {}
        self._next_sweep = clock() + CacheConfig.MEMORY_SWEEP_INTERVAL

    async def connect(self) -> bool:
        """Connect to Redis."""
        if not self.redis_url:
            logger.info("ℹ️ No Redis URL configured, using in-memory cache")
            return False

        try:
            self._redis = aioredis.from_url(
                self.redis_url,
                max_connections=CacheConfig.REDIS_MAX_CONNECTIONS,
                decode_responses=True
            )
            await self._redis.ping()
            self._connected = True
            logger.info("✅ Redis cache connected")
            return True
        except (aioredis.RedisError, OSError) as e:
            logger.warning(f"⚠️ Redis connection failed: {e}. Using in-memory cache.")
            self._redis = None
            self._connected = False
            return False

    async def disconnect(self):
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self._connected = False
            logger.info("Redis cache disconnected")

    @property
    def is_connected(self) -> bool:
        return self._connected

    # ============================================
    # Core Cache Operations
    # ============================================

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None
        """
        if self._connected:
            try:
                value = await self._redis.get(key)
                return json.loads(value) if value is not None else None
            except aioredis.RedisError as e:
                logger.warning(f"Redis get error: {e}")
                return None

        entry = self._memory.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            self._memory.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: Any, ttl: int = CacheConfig.RATING_TTL) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache (JSON serializable)
            ttl: Time to live in seconds

        Returns:
            True if stored; a non-positive ttl stores nothing
        """
        if ttl <= 0:
            await self.delete(key)
            return False

        if self._connected:
            try:
                await self._redis.setex(key, ttl, json.dumps(value, ensure_ascii=False, default=str))
                return True
            except aioredis.RedisError as e:
                logger.warning(f"Redis set error: {e}")
                return False

        now = self._clock()
        if now >= self._next_sweep:
            self._sweep_expired(now)
        self._memory[key] = (value, now + ttl)
        return True

    def _sweep_expired(self, now: float):
        """Drop expired in-memory entries that were never read again."""
        expired = [k for k, (_, expires_at) in self._memory.items() if expires_at <= now]
        for k in expired:
            del self._memory[k]
        self._next_sweep = now + CacheConfig.MEMORY_SWEEP_INTERVAL

    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if self._connected:
            try:
                await self._redis.delete(key)
            except aioredis.RedisError as e:
                logger.warning(f"Redis delete error: {e}")
                return False
            return True

        return self._memory.pop(key, None) is not None

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a prefix pattern.

        Args:
            pattern: Key pattern (e.g., 'rating:supplier:*')

        Returns:
            Number of deleted keys
        """
        if self._connected:
            try:
                count = 0
                async for key in self._redis.scan_iter(match=pattern):
                    count += await self._redis.delete(key)
                return count
            except aioredis.RedisError as e:
                logger.warning(f"Redis delete_pattern error: {e}")
                return 0

        prefix = pattern.rstrip('*')
        to_delete = [k for k in self._memory if k.startswith(prefix)]
        for k in to_delete:
            del self._memory[k]
        return len(to_delete)

    async def get_stats(self) -> dict:
        """Cache statistics."""
        stats = {
            'backend': 'redis' if self._connected else 'memory',
            'connected': self._connected,
        }

        if self._connected:
            try:
                stats['keys_count'] = await self._redis.dbsize()
            except aioredis.RedisError as e:
                logger.warning(f"Redis stats error: {e}")
                stats['error'] = str(e)
        else:
            stats['keys_count'] = len(self._memory)

        return stats


class RatingCache:
    """Short-TTL cache of composite total scores, keyed by supplier."""

    def __init__(self, cache: CachePort, ttl: int = CacheConfig.RATING_TTL):
        self.cache = cache
        self.ttl = ttl
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(supplier_id: str) -> str:
        return f"{CacheConfig.PREFIX_RATING}{supplier_id}"

    async def get_cached_score(self, supplier_id: str) -> Optional[float]:
        """Cached total score, or None on miss."""
        value = await self.cache.get(self._key(supplier_id))
        if value is None:
            self.misses += 1
            return None
        self.hits += 1
        return float(value)

    async def put(self, supplier_id: str, score: float, ttl: Optional[int] = None) -> bool:
        return await self.cache.set(self._key(supplier_id), float(score), ttl if ttl is not None else self.ttl)

    async def invalidate(self, supplier_id: str) -> bool:
        return await self.cache.delete(self._key(supplier_id))

    async def invalidate_all(self) -> int:
        return await self.cache.delete_pattern(f"{CacheConfig.PREFIX_RATING}*")
