"""
Redis client for Comics DB

Shared store for the Metron image cache and the cross-instance Metron
dispatch slot. Every caller must handle get_redis() returning None.
"""
import json
import logging
from typing import Any, Optional
import redis.asyncio as redis
from comicsdb.core.config import settings

logger = logging.getLogger(__name__)

# Global Redis client (initialized lazily)
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get Redis client, initializing if needed.

    Returns None if REDIS_URL not configured (graceful degradation).
    """
    global _redis_client

    if not settings.REDIS_URL:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True
            )
            await _redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning(f"Redis connection failed: {e}. Falling back to in-memory.")
            _redis_client = None

    return _redis_client


async def close_redis():
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


# ----- JSON helpers -----

async def get_json(key: str) -> Optional[Any]:
    """Read a JSON value. None if missing, unparsable or Redis unavailable."""
    client = await get_redis()
    if not client:
        return None

    try:
        data = await client.get(key)
        if data:
            return json.loads(data)
    except Exception as e:
        logger.debug(f"Redis read failed for {key}: {e}")
    return None


async def set_json(key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
    """Write a JSON value. Returns False when Redis is unavailable."""
    client = await get_redis()
    if not client:
        return False

    try:
        payload = json.dumps(value, default=str)
        if ttl_seconds:
            await client.setex(key, ttl_seconds, payload)
        else:
            await client.set(key, payload)
        return True
    except Exception as e:
        logger.warning(f"Redis write failed for {key}: {e}")
        return False
