"""Exponential backoff for transient AdSense API failures.

Retryable conditions:
- Rate limiting: HTTP 429, or a message mentioning quota / rate limit
- Transient server errors: HTTP 500, 503
- Network failures: connection reset, timeouts

Everything else (400, 403, 404, ...) is raised on the first attempt.
"""

import asyncio
import errno
import random
import socket
from collections.abc import Awaitable, Callable
from typing import TypeVar

from adsense_mcp.core.config import Settings
from adsense_mcp.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 32_000
DEFAULT_JITTER_MS = 1000

RETRYABLE_STATUS_CODES = frozenset({429, 500, 503})
RATE_LIMIT_MARKERS = ("quota", "rate limit", "RATE_LIMIT_EXCEEDED")
RETRYABLE_ERRNOS = frozenset({errno.ECONNRESET, errno.ETIMEDOUT})


def _status_of(error: BaseException) -> int | None:
    """Read an HTTP-like status from whatever shape the error has."""
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value

    # googleapiclient.errors.HttpError keeps the response on .resp
    resp = getattr(error, "resp", None)
    status = getattr(resp, "status", None)
    if status is not None:
        try:
            return int(status)
        except (TypeError, ValueError):
            return None
    return None


def is_retryable(error: BaseException) -> bool:
    """Classify an error as transient (worth retrying) or terminal."""
    if isinstance(error, (ConnectionResetError, TimeoutError, socket.timeout)):
        return True

    if isinstance(error, OSError) and error.errno in RETRYABLE_ERRNOS:
        return True

    status = _status_of(error)
    if status in RETRYABLE_STATUS_CODES:
        return True

    message = str(error)
    if any(marker in message for marker in RATE_LIMIT_MARKERS):
        return True

    lowered = message.lower()
    return "econnreset" in lowered or "etimedout" in lowered


class BackoffExecutor:
    """Runs an async operation with bounded exponential backoff.

    Stateless between calls apart from configuration; safe to share.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
        jitter_ms: int = DEFAULT_JITTER_MS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.jitter_ms = jitter_ms
        self._sleep = sleep
        self._rng = rng

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackoffExecutor":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay_ms=settings.retry_base_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
            jitter_ms=settings.retry_jitter_ms,
        )

    def compute_delay_ms(self, attempt: int) -> float:
        """Delay after the zero-based ``attempt`` failed."""
        exponential = self.base_delay_ms * (2**attempt)
        jitter = self._rng() * self.jitter_ms
        return min(self.max_delay_ms, exponential + jitter)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Await ``operation()`` until it succeeds, fails terminally, or runs out of attempts."""
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                if not is_retryable(e):
                    raise

                if attempt == self.max_attempts - 1:
                    logger.error(
                        "Retry attempts exhausted",
                        max_attempts=self.max_attempts,
                        error=str(e),
                    )
                    raise

                delay_ms = self.compute_delay_ms(attempt)
                logger.warning(
                    "Retryable API error, backing off",
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    delay_ms=round(delay_ms),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self._sleep(delay_ms / 1000)
            attempt += 1

