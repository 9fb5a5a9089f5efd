"""Shared background task utilities."""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


def create_background_task(
    coro: Coroutine[Any, Any, Any], *, name: str = ""
) -> asyncio.Task[Any]:
    """Create an asyncio task with exception logging."""
    task: asyncio.Task[Any] = asyncio.create_task(coro, name=name or None)

    def _done(t: asyncio.Task[Any]) -> None:
        if t.cancelled():
            return
        if exc := t.exception():
            logger.error("Background task failed", task_name=name, error=str(exc))

    task.add_done_callback(_done)
    return task


async def run_periodically(
    func: Callable[[], Awaitable[Any]],
    interval_seconds: float,
    *,
    name: str = "",
) -> None:
    """Call ``func`` every ``interval_seconds`` until cancelled.

    A failing iteration is logged and the loop keeps going; the next tick
    gets a fresh chance.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await func()
        except Exception as e:
            logger.warning("Periodic task iteration failed", task_name=name, error=str(e))
