"""
Rate limiting for remote store calls.

Notion allows roughly three requests per second per integration. One
RateLimiter is created per run and shared by every component that issues
remote calls, so the spacing holds across the whole process.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional


DEFAULT_MIN_INTERVAL_MS = 350


class RateLimiter:
    """
    Enforces a minimum interval between consecutive remote calls.
    """

    def __init__(
        self,
        min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize the rate limiter.

        Args:
            min_interval_ms: Minimum spacing between calls in milliseconds
            clock: Monotonic clock returning seconds
            sleep: Coroutine function used to wait
        """
        self.min_interval = min_interval_ms / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        """
        Suspend until the minimum interval since the previous call has elapsed.

        Returns:
            The delay applied, in seconds
        """
        async with self._lock:
            delay = 0.0
            if self._last_call is not None:
                elapsed = self._clock() - self._last_call
                if elapsed < self.min_interval:
                    delay = self.min_interval - elapsed
                    await self._sleep(delay)
            self._last_call = self._clock()
            return delay
