"""
Inbound rate limiting

Uses SlowAPI. Counters live in Redis when REDIS_URL is set so every
instance shares them, otherwise in process memory.

Only /metron-image carries an explicit limit: it is the one endpoint that
can cause outbound Metron traffic.
"""
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from comicsdb.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when proxied, else the socket address."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    enabled=settings.RATE_LIMIT_ENABLED,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=settings.REDIS_URL or "memory://",
)


def retry_after_seconds(exc: RateLimitExceeded) -> int:
    """Length of the exceeded limit's window, e.g. 60 for "30/minute"."""
    try:
        return int(exc.limit.limit.get_expiry())
    except (AttributeError, TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_SECONDS


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the same {"error", "code"} shape as every other client error."""
    retry_after = retry_after_seconds(exc)
    logger.warning(
        f"[RATE_LIMIT] {get_client_ip(request)} exceeded {exc.detail} on {request.url.path}"
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": f"Too many requests ({exc.detail})",
            "code": "RATE_LIMITED",
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )


def get_metron_image_limit():
    """Limit for endpoints that can trigger outbound Metron calls."""
    return limiter.limit(settings.RATE_LIMIT_METRON_IMAGE)
