"""
Unit tests for the in-process TTL cache.
"""
import pytest

from comicsdb.core import ttl_cache
from comicsdb.core.ttl_cache import TTLCache


@pytest.fixture
def clock(monkeypatch):
    """Controllable monotonic clock for expiry tests."""
    now = [1000.0]
    monkeypatch.setattr(ttl_cache.time, "monotonic", lambda: now[0])
    return now


class TestTTLCache:
    def test_get_set(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("a", 1)
        assert cache.get("a") == 1
        assert cache.get("missing", "default") == "default"

    def test_expiry(self, clock):
        cache = TTLCache(ttl_seconds=60)
        cache.set("a", 1)
        clock[0] += 59
        assert cache.get("a") == 1
        clock[0] += 2
        assert cache.get("a") is None
        assert cache.get_stats()["size"] == 0

    def test_lru_eviction(self):
        """The least recently used key goes first."""
        cache = TTLCache(ttl_seconds=60, max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3
        assert cache.get_stats()["evictions"] == 1

    def test_invalidate(self):
        cache = TTLCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2
        cache.invalidate()
        assert cache.get_stats()["size"] == 0

    @pytest.mark.asyncio
    async def test_get_or_fetch_caches_result(self):
        cache = TTLCache()
        calls = []

        async def fetch():
            calls.append(1)
            return frozenset({1, 2})

        assert await cache.get_or_fetch("ids", fetch) == frozenset({1, 2})
        assert await cache.get_or_fetch("ids", fetch) == frozenset({1, 2})
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_get_or_fetch_caches_falsy_values(self):
        """An empty result is a valid cached value."""
        cache = TTLCache()
        calls = []

        async def fetch():
            calls.append(1)
            return frozenset()

        await cache.get_or_fetch("ids", fetch)
        await cache.get_or_fetch("ids", fetch)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_get_or_fetch_does_not_cache_errors(self):
        cache = TTLCache()

        async def failing():
            raise RuntimeError("db down")

        with pytest.raises(RuntimeError):
            await cache.get_or_fetch("ids", failing)
        assert cache.get_stats()["size"] == 0

    def test_stats_hit_rate(self):
        cache = TTLCache()
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5
