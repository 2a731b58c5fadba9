"""Unit tests for the in-memory cache backend and RatingCache."""

import pytest

from supplier_engine.cache import CacheClient, CacheConfig, RatingCache


class FakeClock:

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float):
        self.value += seconds


class DictCache:
    """Bare CachePort without expiry."""

    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ttl):
        self.data[key] = value
        return True

    async def delete(self, key):
        return self.data.pop(key, None) is not None

    async def delete_pattern(self, pattern):
        keys = [k for k in self.data if k.startswith(pattern.rstrip('*'))]
        for k in keys:
            del self.data[k]
        return len(keys)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheClient(clock=clock)


@pytest.mark.unit
class TestMemoryBackend:

    async def test_connect_without_url_stays_in_memory(self, cache):
        assert await cache.connect() is False
        assert cache.is_connected is False
        assert (await cache.get_stats())['backend'] == 'memory'

    async def test_set_get(self, cache):
        await cache.set('k', {'a': 1}, ttl=10)
        assert await cache.get('k') == {'a': 1}

    async def test_expiry(self, cache, clock):
        await cache.set('k', 42, ttl=10)

        clock.advance(9)
        assert await cache.get('k') == 42

        clock.advance(1)
        assert await cache.get('k') is None

    async def test_delete_pattern(self, cache):
        await cache.set(f'{CacheConfig.PREFIX_RATING}s1', 1.0)
        await cache.set(f'{CacheConfig.PREFIX_RATING}s2', 2.0)
        await cache.set('other:key', 3)

        deleted = await cache.delete_pattern(f'{CacheConfig.PREFIX_RATING}*')

        assert deleted == 2
        assert await cache.get('other:key') == 3

    async def test_expired_entries_swept_on_write(self, cache, clock):
        await cache.set('written-once', 1, ttl=10)

        clock.advance(CacheConfig.MEMORY_SWEEP_INTERVAL)
        await cache.set('fresh', 2, ttl=10)

        assert (await cache.get_stats())['keys_count'] == 1
        assert await cache.get('fresh') == 2

    async def test_non_positive_ttl_stores_nothing(self, cache):
        await cache.set('k', 1, ttl=60)

        assert await cache.set('k', 2, ttl=0) is False
        assert await cache.get('k') is None


@pytest.mark.unit
class TestRatingCache:

    async def test_miss_then_hit(self, cache):
        ratings = RatingCache(cache, ttl=60)

        assert await ratings.get_cached_score('s1') is None
        await ratings.put('s1', 77.5)
        assert await ratings.get_cached_score('s1') == 77.5

        assert ratings.misses == 1
        assert ratings.hits == 1

    async def test_ttl_applies(self, cache, clock):
        ratings = RatingCache(cache, ttl=60)
        await ratings.put('s1', 50)

        clock.advance(61)

        assert await ratings.get_cached_score('s1') is None

    async def test_explicit_zero_ttl_not_replaced_by_default(self, cache):
        ratings = RatingCache(cache, ttl=300)

        await ratings.put('s1', 50.0, ttl=0)

        assert await ratings.get_cached_score('s1') is None

    async def test_any_cache_port_backend(self):
        backend = DictCache()
        ratings = RatingCache(backend)

        await ratings.put('s1', 64)

        assert backend.data == {f'{CacheConfig.PREFIX_RATING}s1': 64.0}
        assert await ratings.get_cached_score('s1') == 64.0
        assert await ratings.invalidate_all() == 1

    async def test_invalidate(self, cache):
        ratings = RatingCache(cache)
        await ratings.put('s1', 10)
        await ratings.put('s2', 20)

        await ratings.invalidate('s1')
        assert await ratings.get_cached_score('s1') is None

        assert await ratings.invalidate_all() == 1
        assert await ratings.get_cached_score('s2') is None
