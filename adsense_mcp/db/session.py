"""Async database engine and session management for the cache store.

The engine and session factory are built explicitly and handed to the
services that need them; nothing here keeps module-level state.
"""

import asyncio
from pathlib import Path
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from adsense_mcp.core.logging import get_logger

logger = get_logger(__name__)


def ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    parsed = make_url(url)
    database = parsed.database
    if parsed.get_backend_name() != "sqlite" or not database or database == ":memory:":
        return
    if database.startswith("file:"):
        return
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def create_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create the async engine for the cache store."""
    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        ensure_sqlite_directory(url)
        # Wait on a locked database instead of failing the operation
        connect_args["timeout"] = 30

    engine = create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        connect_args=connect_args,
    )
    logger.info("Database engine created", backend=make_url(url).get_backend_name())
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the async session factory bound to ``engine``."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables.

    Creates all tables defined in the models if they don't exist.
    Alembic migrations produce the same schema for managed installs.
    """
    from adsense_mcp.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables initialized")


async def close_db(engine: AsyncEngine) -> None:
    """Dispose of the engine's connections."""
    await engine.dispose()
    logger.info("Database connections closed")


async def check_db_health(engine: AsyncEngine, timeout: float = 5.0) -> bool:
    """Check database connectivity with timeout."""

    async def _check() -> bool:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    try:
        return await asyncio.wait_for(_check(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("Database health check timed out", timeout=timeout)
        return False
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False
