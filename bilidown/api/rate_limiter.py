"""
Client-side pacing for the Bilibili API, which answers bursts with HTTP 412.
"""

import asyncio
import logging
import time

log = logging.getLogger(__name__)

MIN_CALLS_PER_SECOND = 0.5
RECOVERY_WINDOW_SECONDS = 60
RECOVERY_FACTOR = 1.05


class AdaptiveRateLimiter:
    """
    Spaces out API calls, backing off when the server signals throttling
    (412 or 429) and creeping back up once it has been quiet for a while.
    """

    def __init__(
        self, initial_calls_per_second: float = 4.0, max_calls_per_second: float = 6.0
    ):
        self._max_rate = max_calls_per_second
        self._set_rate(initial_calls_per_second)
        self._last_call = 0.0
        self._last_throttled = 0.0
        self._lock = asyncio.Lock()

    def _set_rate(self, rate: float) -> None:
        self._rate = rate
        self._interval = 1.0 / rate

    @property
    def rate(self) -> float:
        return self._rate

    async def on_throttled(self) -> None:
        """Halves the call rate, down to MIN_CALLS_PER_SECOND."""
        async with self._lock:
            self._set_rate(max(MIN_CALLS_PER_SECOND, self._rate / 2))
            self._last_throttled = time.monotonic()
            log.warning(
                f"[yellow]Bilibili is throttling requests; slowing down to "
                f"{self._rate:.1f} calls/s[/yellow]"
            )

    async def acquire(self) -> None:
        """Waits until the next call is allowed under the current rate."""
        async with self._lock:
            now = time.monotonic()
            if now - self._last_throttled > RECOVERY_WINDOW_SECONDS:
                self._set_rate(min(self._max_rate, self._rate * RECOVERY_FACTOR))

            wait = self._interval - (now - self._last_call)
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_call = time.monotonic()
