"""
Cover image resolution: ComicVine URLs with Metron as the secondary source

Two ComicVine URL shapes exist in cdb_comics:
- old:  .../api/image/scale_avatar/123.jpg   (often dead, worth replacing)
- new:  .../a/uploads/scale_avatar/123.jpg   (fine, only upscale the token)

For old-format URLs the ComicVine issue id is looked up on Metron. Results
are cached by id, including "not found", so an id is asked at most once
per cache lifetime. Lookups go through MetronRateLimiter and every caller
waits at most METRON_TIMEOUT_SECONDS before falling back to the primary
URL; the lookup itself keeps running in the background and fills the cache.

Usage:
    from comicsdb.services.image_resolver import image_resolver

    url = await image_resolver.resolve(comic.comicvine, comic.thumb, comic_id=comic.id)
"""
import asyncio
import logging
import re
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import update

from comicsdb.core.config import settings
from comicsdb.core.database import get_db_session
from comicsdb.core.exceptions import ImageProviderError
from comicsdb.core.metron_rate_limiter import MetronRateLimiter, get_metron_rate_limiter
from comicsdb.core.redis_client import get_redis
from comicsdb.core.utils import utcnow
from comicsdb.models.catalog import Comic
from comicsdb.services.metron import metron_client

logger = logging.getLogger(__name__)

OLD_FORMAT_MARKER = "api/image/"
REDIS_CACHE_KEY = "metron:cache"
NOT_FOUND = ""

_SCALE_TOKEN = re.compile(r"scale_(avatar|small|medium|thumb)")


def is_old_format(url: Optional[str]) -> bool:
    return bool(url) and OLD_FORMAT_MARKER in url


def upgrade_scale(url: Optional[str]) -> Optional[str]:
    """Swap the thumbnail scale token for scale_large; nothing else changes."""
    if not url:
        return None
    return _SCALE_TOKEN.sub("scale_large", url)


class MemoryImageCache:
    """Process-local cache: id -> URL, or NOT_FOUND for ids checked without a result."""

    storage = "memory"

    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[int, Tuple[float, str]] = {}
        self._recent: Deque[Dict[str, Any]] = deque(maxlen=10)
        self.last_updated: Optional[str] = None

    def get(self, comicvine_id: int) -> Tuple[bool, Optional[str]]:
        entry = self._entries.get(comicvine_id)
        if entry is None:
            return False, None
        stored_at, value = entry
        if time.monotonic() - stored_at > self.ttl_seconds:
            del self._entries[comicvine_id]
            return False, None
        return True, value or None

    def set(self, comicvine_id: int, url: Optional[str]) -> None:
        self._entries[comicvine_id] = (time.monotonic(), url or NOT_FOUND)
        self.last_updated = utcnow().isoformat()
        if url:
            self._recent.appendleft({"comicvine_id": comicvine_id, "image": url})

    def clear(self) -> None:
        self._entries.clear()
        self._recent.clear()
        self.last_updated = None

    def stats(self) -> Dict[str, Any]:
        checked = len(self._entries)
        not_found = sum(1 for _, value in self._entries.values() if value == NOT_FOUND)
        return {
            "cached_count": checked - not_found,
            "checked_count": checked,
            "not_found_count": not_found,
            "last_updated": self.last_updated,
            "recent": list(self._recent),
        }


class RedisImageCache:
    """Shared cache in one Redis hash; the hash lifetime slides on every write."""

    storage = "redis"

    def __init__(self, client, ttl_seconds: int):
        self._client = client
        self.ttl_seconds = ttl_seconds

    async def get(self, comicvine_id: int) -> Tuple[bool, Optional[str]]:
        value = await self._client.hget(REDIS_CACHE_KEY, str(comicvine_id))
        if value is None:
            return False, None
        return True, value or None

    async def set(self, comicvine_id: int, url: Optional[str]) -> None:
        await self._client.hset(REDIS_CACHE_KEY, str(comicvine_id), url or NOT_FOUND)
        await self._client.expire(REDIS_CACHE_KEY, self.ttl_seconds)

    async def stats(self) -> Dict[str, Any]:
        values = await self._client.hvals(REDIS_CACHE_KEY)
        not_found = sum(1 for value in values if value == NOT_FOUND)
        return {
            "cached_count": len(values) - not_found,
            "checked_count": len(values),
            "not_found_count": not_found,
        }


async def _persist_to_comics(comicvine_id: int, url: Optional[str]) -> None:
    """Write the resolved URL onto every live row of that issue. Last writer wins."""
    async with get_db_session() as db:
        await db.execute(
            update(Comic)
            .where(Comic.comicvine == comicvine_id, Comic.date_delete.is_(None))
            .values(metron_image=url or NOT_FOUND)
        )


class ImageResolver:
    """
    Resolves display covers, consulting Metron only for old-format URLs.

    Attributes:
        timeout: Max seconds a caller waits for a lookup
        queue_timeout: Max seconds a background lookup waits for a limiter slot
    """

    def __init__(
        self,
        client=None,
        limiter: Optional[MetronRateLimiter] = None,
        timeout: Optional[float] = None,
        queue_timeout: float = 120.0,
        persist: Optional[Callable[[int, Optional[str]], Awaitable[None]]] = _persist_to_comics,
        use_redis: bool = True,
    ):
        self._client = client
        self._limiter = limiter
        self.timeout = timeout if timeout is not None else settings.METRON_TIMEOUT_SECONDS
        self.queue_timeout = queue_timeout
        self._persist = persist
        self._use_redis = use_redis
        self._memory = MemoryImageCache(settings.METRON_CACHE_TTL_SECONDS)
        self._inflight: Dict[int, asyncio.Task] = {}
        self._metrics = {
            "lookups": 0,
            "cache_hits": 0,
            "provider_calls": 0,
            "provider_errors": 0,
            "timeouts": 0,
        }

    @property
    def client(self):
        if self._client is None:
            self._client = metron_client
        return self._client

    @property
    def limiter(self) -> MetronRateLimiter:
        return self._limiter or get_metron_rate_limiter()

    async def _shared_cache(self) -> Optional[RedisImageCache]:
        if not self._use_redis:
            return None
        client = await get_redis()
        if client is None:
            return None
        return RedisImageCache(client, settings.METRON_CACHE_TTL_SECONDS)

    async def peek(self, comicvine_id: int) -> Tuple[bool, Optional[str]]:
        """
        Cache lookup without any outbound request.

        Returns (known, url): known is False for ids never checked,
        url is None for ids checked without a Metron match.
        """
        known, url = self._memory.get(comicvine_id)
        if known:
            return known, url

        shared = await self._shared_cache()
        if shared is not None:
            try:
                known, url = await shared.get(comicvine_id)
            except Exception as e:
                logger.warning(f"[METRON_IMG] Shared cache read failed for {comicvine_id}: {e}")
                return False, None
            if known:
                self._memory.set(comicvine_id, url)
            return known, url

        return False, None

    async def _store(self, comicvine_id: int, url: Optional[str], persist: bool) -> None:
        self._memory.set(comicvine_id, url)

        shared = await self._shared_cache()
        if shared is not None:
            try:
                await shared.set(comicvine_id, url)
            except Exception as e:
                logger.warning(f"[METRON_IMG] Shared cache write failed for {comicvine_id}: {e}")

        if persist and self._persist is not None:
            try:
                await self._persist(comicvine_id, url)
            except Exception as e:
                logger.warning(f"[METRON_IMG] Could not persist image for cv={comicvine_id}: {e}")

    async def _fetch_and_store(self, comicvine_id: int, persist: bool) -> Optional[str]:
        try:
            allowed, reason = await self.limiter.acquire(
                comicvine_id=comicvine_id, timeout=self.queue_timeout
            )
            if not allowed:
                logger.info(f"[METRON_IMG] Skipped cv={comicvine_id}: {reason}")
                return None

            self._metrics["provider_calls"] += 1
            try:
                url = await self.client.fetch_issue_image(comicvine_id)
            except ImageProviderError as e:
                # Remember the failure for this cache lifetime, but keep the row unmarked
                self._metrics["provider_errors"] += 1
                logger.warning(f"[METRON_IMG] Lookup failed for cv={comicvine_id}: {e.message}")
                await self._store(comicvine_id, None, persist=False)
                return None

            await self._store(comicvine_id, url, persist=persist)
            logger.info(
                f"[METRON_IMG] cv={comicvine_id}: {'found' if url else 'not found'}"
            )
            return url
        finally:
            self._inflight.pop(comicvine_id, None)

    async def lookup(self, comicvine_id: Optional[int], persist: bool = False) -> Optional[str]:
        """
        Metron cover for a ComicVine id, None when absent, disabled or too slow.

        Concurrent lookups of the same id share one outbound request.
        """
        if not comicvine_id or comicvine_id <= 0:
            return None

        self._metrics["lookups"] += 1
        known, url = await self.peek(comicvine_id)
        if known:
            self._metrics["cache_hits"] += 1
            return url

        if not settings.METRON_ENABLED:
            return None

        task = self._inflight.get(comicvine_id)
        if task is None:
            task = asyncio.create_task(self._fetch_and_store(comicvine_id, persist))
            self._inflight[comicvine_id] = task

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.timeout)
        except asyncio.TimeoutError:
            self._metrics["timeouts"] += 1
            logger.debug(f"[METRON_IMG] Timeout for cv={comicvine_id}, using primary URL")
            return None

    async def resolve(
        self,
        comicvine_id: Optional[int],
        primary_url: Optional[str],
        comic_id: Optional[int] = None,
        cached: Optional[str] = None,
    ) -> Optional[str]:
        """
        Display URL for one cover.

        Args:
            comicvine_id: ComicVine issue id of the comic
            primary_url: URL stored in cdb_comics (thumb/tiny/small/super)
            comic_id: When given, a fresh result is written back to cdb_comics
            cached: The row's metron_image value if already loaded
        """
        # Only old-format ComicVine URLs are worth a Metron lookup
        if not is_old_format(primary_url):
            return upgrade_scale(primary_url)

        if cached is not None:
            return cached or upgrade_scale(primary_url)

        metron_url = await self.lookup(comicvine_id, persist=comic_id is not None)
        return metron_url or upgrade_scale(primary_url)

    async def resolve_many(
        self,
        items: Iterable[Tuple[Optional[int], Optional[str], Optional[int], Optional[str]]],
    ) -> List[Optional[str]]:
        """resolve() for a page of (comicvine_id, primary_url, comic_id, cached) tuples."""
        return list(await asyncio.gather(*(self.resolve(*item) for item in items)))

    async def get_stats(self) -> Dict[str, Any]:
        stats = self._memory.stats()
        stats["storage"] = self._memory.storage

        shared = await self._shared_cache()
        if shared is not None:
            try:
                stats.update(await shared.stats())
                stats["storage"] = shared.storage
            except Exception as e:
                logger.warning(f"[METRON_IMG] Shared cache stats failed: {e}")

        stats["in_flight"] = len(self._inflight)
        stats["metrics"] = dict(self._metrics)
        return stats

    def clear(self) -> None:
        self._memory.clear()


# Singleton instance
image_resolver = ImageResolver()
