"""Rate limiting for outbound price lookups.

The search API's quota is per request, so the refresh job spaces its
lookups by a fixed minimum interval. Clock and sleep are injectable so
the limiter can be driven by a virtual clock in tests.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)


class RateLimiter:
    """Leaky bucket of capacity one: at most one acquire per interval.

    Example:
        >>> limiter = RateLimiter(min_interval=0.4)
        >>> await limiter.acquire()  # First call: no wait
        >>> await limiter.acquire()  # Second call: waits until 0.4s after the first
    """

    def __init__(
        self,
        min_interval: float = 0.4,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize rate limiter.

        Args:
            min_interval: Minimum seconds between consecutive acquires
            clock: Monotonic clock returning seconds
            sleep: Coroutine function used to wait
        """
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_acquire: float | None = None
        self.lock = asyncio.Lock()

    async def acquire(self) -> float:
        """Wait until the next call is allowed.

        Returns:
            Seconds spent waiting
        """
        async with self.lock:
            wait = self.time_until_ready()
            if wait > 0:
                logger.debug("rate_limit_wait", seconds=round(wait, 3))
                await self._sleep(wait)

            self._last_acquire = self._clock()
            return wait

    def time_until_ready(self) -> float:
        """Seconds until acquire() would return immediately (0 if ready now)."""
        if self._last_acquire is None:
            return 0.0

        elapsed = self._clock() - self._last_acquire
        if elapsed >= self.min_interval:
            return 0.0

        return self.min_interval - elapsed
