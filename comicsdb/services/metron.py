"""
Metron Comic Database API client
https://metron.cloud/

Only one call is used: look up an issue by its ComicVine id and take the
cover image. Callers are expected to go through MetronRateLimiter first;
the client itself reports 429s to the limiter but never sleeps.
"""
import logging
from typing import Optional

import httpx

from comicsdb.core.config import settings
from comicsdb.core.exceptions import ImageProviderError, ImageProviderRateLimited
from comicsdb.core.metron_rate_limiter import get_metron_rate_limiter

logger = logging.getLogger(__name__)


class MetronClient:
    """
    Thin async client for Metron issue lookups.

    The httpx client is created lazily and closed from the app lifespan.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.METRON_API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.METRON_TIMEOUT_SECONDS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            auth = None
            if settings.METRON_USERNAME and settings.METRON_PASSWORD:
                auth = httpx.BasicAuth(settings.METRON_USERNAME, settings.METRON_PASSWORD)
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                auth=auth,
                transport=self._transport,
                headers={
                    "Accept": "application/json",
                    "User-Agent": f"{settings.APP_NAME}/1.0",
                },
            )
            logger.debug("[METRON] HTTP client initialized")
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_issue_image(self, comicvine_id: int) -> Optional[str]:
        """
        Cover image URL for a ComicVine issue id, None when Metron has no match.

        Raises:
            ImageProviderRateLimited: Metron answered 429
            ImageProviderError: transport failure or other non-2xx status
        """
        client = self._ensure_client()
        try:
            response = await client.get("/issue/", params={"cv_id": comicvine_id})
        except httpx.HTTPError as e:
            raise ImageProviderError(
                f"Metron request failed: {type(e).__name__}",
                details={"cv_id": comicvine_id},
            ) from e

        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            get_metron_rate_limiter().record_rate_limit(retry_after)
            raise ImageProviderRateLimited("Metron rate limit hit", retry_after=retry_after)

        if response.status_code == 404:
            return None

        if response.status_code >= 400:
            raise ImageProviderError(
                f"Metron returned HTTP {response.status_code}",
                details={"cv_id": comicvine_id, "status": response.status_code},
            )

        get_metron_rate_limiter().record_success()

        try:
            data = response.json()
        except ValueError as e:
            raise ImageProviderError("Metron returned invalid JSON") from e

        results = data.get("results") or []
        if not results:
            return None
        return results[0].get("image") or None


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


# Singleton instance
metron_client = MetronClient()
