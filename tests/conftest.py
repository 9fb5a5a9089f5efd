"""Test configuration and fixtures.

Provides isolated test fixtures for:
- A temporary SQLite cache database per test
- A controllable millisecond clock
- A fake monotonic time source whose sleep advances the clock
- A MagicMock standing in for the AdSense API resource
"""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import MagicMock

import httplib2
import pytest
import pytest_asyncio
from googleapiclient.errors import HttpError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from adsense_mcp.core.config import Settings
from adsense_mcp.db.session import close_db, create_engine, create_session_factory, init_db
from adsense_mcp.services.cache import ResponseCache

START_MS = 1_700_000_000_000


# =============================================================================
# Time Helpers
# =============================================================================

class FakeClock:
    """Wall clock in epoch milliseconds, advanced by hand."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeTime:
    """Monotonic clock plus a sleep that moves it forward instead of waiting.

    Concurrent sleepers each wake at their own deadline; the clock never
    moves backwards.
    """

    def __init__(self, now: float = 0.0):
        self.now = now
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        target = self.now + seconds * 1000
        await asyncio.sleep(0)
        self.now = max(self.now, target)


def http_error(status: int, content: bytes = b"error") -> HttpError:
    """Build a googleapiclient HttpError with the given status."""
    return HttpError(resp=httplib2.Response({"status": status}), content=content)


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings isolated to a temporary config directory."""
    return Settings(config_dir=tmp_path, debug=True, _env_file=None)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite cache database with schema for each test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(test_engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(session_factory: async_sessionmaker[AsyncSession], clock: FakeClock) -> ResponseCache:
    return ResponseCache(session_factory, clock=clock)


# =============================================================================
# Upstream Fixtures
# =============================================================================

@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def resource() -> MagicMock:
    """Stand-in for the googleapiclient AdSense resource."""
    return MagicMock(name="adsense")
