"""
Rate limiter for Play Music API calls.

Hey future me – token bucket with adaptive backoff on 429!
- Bucket holds max_tokens, refilled with refill_rate tokens/sec
- Every request takes one token, empty bucket = wait
- 429 → wait initial_backoff, then double it for every further 429
- A successful request resets the backoff

USAGE:
    limiter = get_gplay_limiter()

    async with limiter:
        response = await client.get(url)

    # On 429:
    await limiter.handle_rate_limit_response(retry_after)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter.

    The backend has no published limit. Station refills plus the per-track context
    lookups come in bursts of up to 200 requests, so the bucket is generous but the
    sustained rate is conservative.
    """

    max_tokens: int = 20  # Bucket size
    refill_rate: float = 5.0  # Tokens per second
    max_backoff_seconds: float = 120.0
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass
class RateLimiter:
    """Token bucket rate limiter with adaptive backoff.

    Attributes:
        config: Rate limiter configuration
        name: Limiter name for logging
    """

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        """Start with a full bucket."""
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    @classmethod
    def for_gplay(cls) -> "RateLimiter":
        """Create the limiter used for all Play Music requests."""
        return cls(config=RateLimiterConfig(), name="gplay")

    def _refill_tokens(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(
            self.config.max_tokens, self._tokens + elapsed * self.config.refill_rate
        )
        self._last_refill = now

    async def acquire(self) -> None:
        """Acquire one token, waiting if necessary."""
        async with self._lock:
            self._refill_tokens()

            while self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self.config.refill_rate
                logger.debug(
                    "RateLimiter[%s]: No tokens available, waiting %.2fs",
                    self.name,
                    wait_time,
                )
                # Other acquirers queue up on the lock meanwhile, that's the point
                await asyncio.sleep(wait_time)
                self._refill_tokens()

            self._tokens -= 1.0

    async def handle_rate_limit_response(self, retry_after: int | None = None) -> float:
        """Wait after a 429, honouring Retry-After if the backend sent one.

        Returns:
            The actual wait time used
        """
        async with self._lock:
            wait_time = (
                float(retry_after) if retry_after is not None else self._current_backoff
            )
            wait_time = min(wait_time, self.config.max_backoff_seconds)

            logger.warning(
                "RateLimiter[%s]: 429 Rate Limited! Waiting %.1fs before retry",
                self.name,
                wait_time,
            )

            self._current_backoff = min(
                self._current_backoff * self.config.backoff_multiplier,
                self.config.max_backoff_seconds,
            )
            self._tokens = 0.0

        await asyncio.sleep(wait_time)
        return wait_time

    def reset_backoff(self) -> None:
        """Reset backoff after a successful request."""
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        if exc_type is None:
            self.reset_backoff()

    @property
    def available_tokens(self) -> float:
        """Get current available tokens (for debugging)."""
        self._refill_tokens()
        return self._tokens


_gplay_limiter: RateLimiter | None = None


def get_gplay_limiter() -> RateLimiter:
    """Get singleton Play Music rate limiter."""
    global _gplay_limiter
    if _gplay_limiter is None:
        _gplay_limiter = RateLimiter.for_gplay()
    return _gplay_limiter


__all__ = ["RateLimiter", "RateLimiterConfig", "get_gplay_limiter"]
