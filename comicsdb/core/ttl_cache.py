"""
In-process TTL cache

Small LRU + TTL cache for values that are expensive to query but cheap to
hold, e.g. the set of comic ids that belong to any crossover event.

Usage:
    from comicsdb.core.ttl_cache import TTLCache

    cache = TTLCache(ttl_seconds=60)
    ids = await cache.get_or_fetch("event_comic_ids", fetch_func=load_ids)
"""
import logging
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

_MISSING = object()


class TTLCache:
    """
    LRU cache with TTL.

    Safe for single-threaded async usage (standard in asyncio). Two
    concurrent misses may both fetch; the last write wins, which is fine
    for idempotent values.

    Attributes:
        ttl_seconds: Time-to-live for cache entries
        max_size: Maximum cache entries before LRU eviction
    """

    def __init__(self, ttl_seconds: float = 60, max_size: int = 256):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._cache: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._cache.get(key)
        if entry is None:
            self._misses += 1
            return default

        stored_at, value = entry
        if time.monotonic() - stored_at > self.ttl_seconds:
            del self._cache[key]
            self._misses += 1
            logger.debug(f"[TTL_CACHE] Expired: {key}")
            return default

        self._cache.move_to_end(key)
        self._hits += 1
        return value

    def set(self, key: str, value: Any) -> None:
        if key in self._cache:
            self._cache.move_to_end(key)
        while len(self._cache) >= self.max_size and key not in self._cache:
            self._cache.popitem(last=False)
            self._evictions += 1
        self._cache[key] = (time.monotonic(), value)

    async def get_or_fetch(
        self,
        key: str,
        fetch_func: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the cached value or await fetch_func() and cache its result.

        Exceptions from fetch_func propagate and nothing is cached.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value

        value = await fetch_func()
        self.set(key, value)
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one key, or everything when key is None."""
        if key is None:
            self._cache.clear()
        else:
            self._cache.pop(key, None)

    def get_stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        return {
            "size": len(self._cache),
            "max_size": self.max_size,
            "ttl_seconds": self.ttl_seconds,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "hit_rate": round(self._hits / total, 3) if total else 0.0,
        }
