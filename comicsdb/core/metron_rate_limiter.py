"""
Metron Rate Limiter - fixed spacing for outbound Metron issue lookups

Controls:
- Strict serialization: one dispatch at a time per process (asyncio.Lock)
- Minimum delay between dispatch starts (METRON_MIN_DELAY_SECONDS, default 4s)
- Shared cooldown after a 429 response
- Cross-instance spacing through a Redis slot key (SET NX PX) when Redis is
  configured; without Redis the spacing is process-local only

The limiter never sends anything itself. Callers acquire() a slot, make
their request, and report 429s back through record_rate_limit().
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import uuid4

from comicsdb.core.redis_client import get_redis

logger = logging.getLogger(__name__)

SLOT_KEY = "metron:dispatch_slot"


@dataclass
class MetronRateLimiterConfig:
    """Configuration for Metron rate limiting."""
    min_delay_seconds: float = 4.0     # Spacing between dispatch starts
    cooldown_seconds: float = 60.0     # Base cooldown after 429 response
    max_cooldown_seconds: float = 300.0
    use_shared_slot: bool = True       # Claim the Redis slot when available
    enabled: bool = True


class MetronRateLimiter:
    """
    Global rate limiter for Metron API with strict serialization.

    Guarantees (per process):
    - Max concurrency = 1 between acquire() returning and the next acquire()
    - Dispatch starts are at least min_delay_seconds apart
    - No dispatch while a 429 cooldown is active
    """

    _instance: Optional['MetronRateLimiter'] = None

    def __new__(cls):
        """Singleton pattern - one global rate limiter."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._initialized = True
        self._config = MetronRateLimiterConfig()
        self._lock = asyncio.Lock()
        self._instance_id = uuid4().hex[:12]

        self._clock: Callable[[], float] = time.monotonic
        self._sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

        self._last_dispatch: Optional[float] = None
        self._cooldown_until: float = 0.0
        self._consecutive_429s: int = 0
        self._pending_requests: int = 0

        self._metrics = {
            "total_requests": 0,
            "dispatched": 0,
            "timeouts": 0,
            "rate_limited_responses": 0,
            "shared_slot_waits": 0,
        }

        logger.info("[MetronRL] Rate limiter initialized (singleton)")

    def configure(
        self,
        min_delay_seconds: Optional[float] = None,
        cooldown_seconds: Optional[float] = None,
        use_shared_slot: Optional[bool] = None,
        enabled: Optional[bool] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        """
        Configure rate limiter settings.

        clock/sleep are injectable so spacing can be verified without waiting.
        """
        if min_delay_seconds is not None:
            self._config.min_delay_seconds = min_delay_seconds
        if cooldown_seconds is not None:
            self._config.cooldown_seconds = cooldown_seconds
        if use_shared_slot is not None:
            self._config.use_shared_slot = use_shared_slot
        if enabled is not None:
            self._config.enabled = enabled
        if clock is not None:
            self._clock = clock
        if sleep is not None:
            self._sleep = sleep

        logger.info(
            f"[MetronRL] Configured: enabled={self._config.enabled}, "
            f"min_delay={self._config.min_delay_seconds}s, "
            f"shared_slot={self._config.use_shared_slot}"
        )

    @property
    def is_enabled(self) -> bool:
        return self._config.enabled

    @property
    def min_delay_seconds(self) -> float:
        return self._config.min_delay_seconds

    @property
    def is_in_cooldown(self) -> bool:
        return self._clock() < self._cooldown_until

    @property
    def cooldown_remaining(self) -> float:
        return max(0.0, self._cooldown_until - self._clock())

    @property
    def pending_requests(self) -> int:
        return self._pending_requests

    def _seconds_until_next_slot(self) -> float:
        now = self._clock()
        wait = 0.0
        if self._last_dispatch is not None:
            wait = self._last_dispatch + self._config.min_delay_seconds - now
        return max(wait, self._cooldown_until - now, 0.0)

    async def _claim_shared_slot(self) -> None:
        """Block until this instance owns the cross-instance dispatch slot."""
        if not self._config.use_shared_slot:
            return

        client = await get_redis()
        if client is None:
            return

        slot_ms = max(1, int(self._config.min_delay_seconds * 1000))
        while True:
            try:
                claimed = await client.set(SLOT_KEY, self._instance_id, nx=True, px=slot_ms)
                if claimed:
                    return
                ttl_ms = await client.pttl(SLOT_KEY)
            except Exception as e:
                logger.warning(f"[MetronRL] Shared slot unavailable, using local spacing: {e}")
                return

            self._metrics["shared_slot_waits"] += 1
            await self._sleep(max(ttl_ms, 50) / 1000.0)

    async def _wait_for_slot(self) -> None:
        async with self._lock:
            wait = self._seconds_until_next_slot()
            if wait > 0:
                logger.debug(f"[MetronRL] Waiting {wait:.2f}s for next slot")
                await self._sleep(wait)

            await self._claim_shared_slot()
            self._last_dispatch = self._clock()
            self._metrics["dispatched"] += 1

    async def acquire(
        self,
        request_id: Optional[str] = None,
        comicvine_id: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> tuple[bool, str]:
        """
        Wait for permission to make one Metron request.

        Args:
            request_id: Identifier for logging
            comicvine_id: Issue being looked up (for logging)
            timeout: Max seconds to wait for a slot (None waits indefinitely)

        Returns:
            (success, reason) - True if the request can be sent now
        """
        if not self._config.enabled:
            return True, "feature_disabled"

        request_id = request_id or uuid4().hex[:8]
        self._metrics["total_requests"] += 1
        self._pending_requests += 1

        try:
            if timeout is None:
                await self._wait_for_slot()
            else:
                await asyncio.wait_for(self._wait_for_slot(), timeout=timeout)
        except asyncio.TimeoutError:
            self._metrics["timeouts"] += 1
            logger.warning(
                f"[MetronRL] TIMEOUT {request_id} cv={comicvine_id}: waited {timeout}s for slot"
            )
            return False, "timeout"
        finally:
            self._pending_requests -= 1

        logger.debug(f"[MetronRL] ALLOW {request_id} cv={comicvine_id}")
        return True, "ok"

    def record_rate_limit(self, retry_after: Optional[float] = None) -> None:
        """Record a 429 response and push every later dispatch past the cooldown."""
        self._consecutive_429s += 1
        self._metrics["rate_limited_responses"] += 1

        if retry_after:
            cooldown = retry_after
        else:
            cooldown = min(
                self._config.max_cooldown_seconds,
                self._config.cooldown_seconds * (2 ** (self._consecutive_429s - 1)),
            )

        self._cooldown_until = self._clock() + cooldown
        logger.warning(
            f"[MetronRL] 429 RECEIVED (#{self._consecutive_429s}): cooldown {cooldown:.0f}s"
        )

    def record_success(self) -> None:
        self._consecutive_429s = 0

    def get_status(self) -> Dict[str, Any]:
        """Get comprehensive rate limiter status."""
        return {
            "enabled": self._config.enabled,
            "config": {
                "min_delay_seconds": self._config.min_delay_seconds,
                "cooldown_seconds": self._config.cooldown_seconds,
                "use_shared_slot": self._config.use_shared_slot,
            },
            "state": {
                "seconds_until_next_slot": round(self._seconds_until_next_slot(), 3),
                "in_cooldown": self.is_in_cooldown,
                "cooldown_remaining_seconds": round(self.cooldown_remaining, 3),
                "consecutive_429s": self._consecutive_429s,
                "pending_requests": self._pending_requests,
            },
            "metrics": dict(self._metrics),
        }


# Global singleton instance
_metron_rate_limiter: Optional[MetronRateLimiter] = None


def get_metron_rate_limiter() -> MetronRateLimiter:
    """Get the global Metron rate limiter instance."""
    global _metron_rate_limiter
    if _metron_rate_limiter is None:
        _metron_rate_limiter = MetronRateLimiter()
    return _metron_rate_limiter


def init_metron_rate_limiter(
    enabled: bool = True,
    min_delay_seconds: float = 4.0,
) -> MetronRateLimiter:
    """
    Initialize the Metron rate limiter with configuration.

    Called during app startup.
    """
    limiter = get_metron_rate_limiter()
    limiter.configure(enabled=enabled, min_delay_seconds=min_delay_seconds)
    return limiter
