"""Client-side request throttle for the AdSense API.

AdSense API limits:
- 100 requests per minute per user
- 500 requests per minute per project
- 10,000 requests per day

The throttle keeps a sliding window of admission timestamps and delays
callers until the oldest admission leaves the window. It never rejects.
"""

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable

from adsense_mcp.core.config import Settings
from adsense_mcp.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_REQUESTS = 100
DEFAULT_WINDOW_MS = 60_000
DEFAULT_BUFFER_MS = 100
NEAR_LIMIT_RATIO = 0.8


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class RequestThrottle:
    """Sliding-window throttle shared by every outbound call path.

    The prune/check/append sequence runs under an ``asyncio.Lock`` and is
    repeated after every wait, so concurrent waiters re-check the live
    window instead of all being admitted at once.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_ms: int = DEFAULT_WINDOW_MS,
        buffer_ms: int = DEFAULT_BUFFER_MS,
        clock: Callable[[], float] = _monotonic_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_requests <= 0 or window_ms <= 0:
            raise ValueError("max_requests and window_ms must be positive")

        self.max_requests = max_requests
        self.window_ms = window_ms
        self.buffer_ms = buffer_ms
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()
        self._lock = asyncio.Lock()

        logger.info(
            "Request throttle initialized",
            max_requests=max_requests,
            window_ms=window_ms,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RequestThrottle":
        return cls(
            max_requests=settings.rate_limit_requests_per_minute,
            window_ms=settings.rate_limit_window_ms,
            buffer_ms=settings.rate_limit_buffer_ms,
        )

    def _prune(self, now: float) -> None:
        """Drop timestamps that fell out of the trailing window."""
        cutoff = now - self.window_ms
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    async def throttle(self) -> None:
        """Wait until a request may be sent, then record it."""
        while True:
            async with self._lock:
                now = self._clock()
                self._prune(now)
                if len(self._timestamps) < self.max_requests:
                    self._timestamps.append(now)
                    return
                wait_ms = self._timestamps[0] + self.window_ms - now + self.buffer_ms

            if wait_ms > 0:
                logger.info(
                    "Rate limit reached, delaying request",
                    wait_ms=round(wait_ms),
                    window_size=len(self._timestamps),
                )
                await self._sleep(wait_ms / 1000)

    def request_count(self) -> int:
        """Number of admissions in the current window."""
        cutoff = self._clock() - self.window_ms
        return sum(1 for ts in self._timestamps if ts > cutoff)

    def is_near_limit(self) -> bool:
        """Advisory: True at 80% of quota or more. Has no gating effect."""
        return self.request_count() >= self.max_requests * NEAR_LIMIT_RATIO
