"""Cooperative rate limiters for external capability calls.

Each pipeline run builds its own limiter instances, so two documents never
share limiter state. Tests inject NoopRateLimiter.
"""

import asyncio
import time
from typing import Protocol, runtime_checkable

from manual_kb.core.exceptions import ConfigurationError
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)


@runtime_checkable
class RateLimiter(Protocol):
    async def acquire(self) -> None:
        ...


class NoopRateLimiter:
    """Grants every request immediately."""

    async def acquire(self) -> None:
        return None


class FixedDelayRateLimiter:
    """Guarantees at least ``delay`` seconds between consecutive grants."""

    def __init__(self, delay: float):
        if delay < 0:
            raise ConfigurationError(f"Rate limiter delay must be >= 0, got {delay}")
        self.delay = delay
        self._last_grant: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            if self._last_grant is not None:
                wait = self.delay - (time.monotonic() - self._last_grant)
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_grant = time.monotonic()


class TokenBucketRateLimiter:
    """Async token bucket: bursts up to ``capacity``, refills at ``rate_per_sec``."""

    def __init__(self, rate_per_sec: float, capacity: float = 1.0):
        if rate_per_sec <= 0:
            raise ConfigurationError(f"Token bucket rate must be > 0, got {rate_per_sec}")
        if capacity < 1:
            raise ConfigurationError(f"Token bucket capacity must be >= 1, got {capacity}")
        self.rate_per_sec = rate_per_sec
        self.capacity = capacity
        self.tokens = capacity
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.rate_per_sec)
        self.last_refill = now

    async def acquire(self) -> None:
        # Holding the lock while sleeping keeps grants in request order
        async with self._lock:
            self._refill()
            if self.tokens < 1:
                await asyncio.sleep((1 - self.tokens) / self.rate_per_sec)
                self._refill()
            self.tokens -= 1


def build_rate_limiter(kind: str, delay: float) -> RateLimiter:
    """Create a limiter from settings.

    Args:
        kind: "fixed", "token_bucket" or "none"
        delay: Minimum seconds between requests; for a token bucket the
            refill rate is ``1 / delay``

    Returns:
        A fresh limiter instance
    """
    kind = (kind or "fixed").lower()

    if kind == "none" or delay <= 0:
        return NoopRateLimiter()
    if kind == "fixed":
        return FixedDelayRateLimiter(delay)
    if kind == "token_bucket":
        return TokenBucketRateLimiter(rate_per_sec=1.0 / delay, capacity=1.0)

    raise ConfigurationError(f"Unsupported rate limiter: {kind}")
