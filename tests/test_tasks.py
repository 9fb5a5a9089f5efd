"""Tests for background task helpers."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from adsense_mcp.core.tasks import create_background_task, run_periodically


class TestRunPeriodically:
    async def test_keeps_running_after_failed_iteration(self):
        calls = 0

        async def sweep() -> int:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("database is locked")
            if calls == 3:
                raise asyncio.CancelledError
            return 0

        with pytest.raises(asyncio.CancelledError):
            await run_periodically(sweep, 0, name="cache-sweep")

        assert calls == 3

    async def test_cancellation_stops_loop(self):
        func = AsyncMock(return_value=0)
        task = asyncio.create_task(run_periodically(func, 3600))
        await asyncio.sleep(0)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        func.assert_not_awaited()


class TestCreateBackgroundTask:
    async def test_returns_result(self):
        async def work() -> str:
            return "done"

        task = create_background_task(work(), name="work")
        assert await task == "done"
        assert task.get_name() == "work"

    async def test_failure_is_retrieved_by_callback(self):
        async def boom() -> None:
            raise RuntimeError("boom")

        task = create_background_task(boom(), name="boom")
        await asyncio.wait([task])
        await asyncio.sleep(0)

        assert task.done()
        assert isinstance(task.exception(), RuntimeError)
