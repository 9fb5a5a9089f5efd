"""MCP server entry point."""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from adsense_mcp.core.config import Settings, get_settings
from adsense_mcp.core.logging import get_logger, setup_logging
from adsense_mcp.core.tasks import create_background_task, run_periodically
from adsense_mcp.db.session import close_db, create_engine, create_session_factory, init_db
from adsense_mcp.server import ServerState, create_server
from adsense_mcp.services.adsense import AdSenseService
from adsense_mcp.services.auth import (
    build_adsense_resource,
    build_http_factory,
    default_providers,
    load_credentials,
)
from adsense_mcp.services.cache import ResponseCache
from adsense_mcp.services.rate_limit import RequestThrottle
from adsense_mcp.services.retry import BackoffExecutor

# Initialize logging first
setup_logging()
logger = get_logger(__name__)


def build_service(settings: Settings, cache: ResponseCache) -> AdSenseService:
    """Load credentials and assemble the facade."""
    credentials = load_credentials(default_providers(settings))
    return AdSenseService(
        resource=build_adsense_resource(credentials),
        cache=cache,
        throttle=RequestThrottle.from_settings(settings),
        executor=BackoffExecutor.from_settings(settings),
        default_account_id=settings.adsense_account_id or None,
        http_factory=build_http_factory(credentials),
    )


def make_lifespan(state: ServerState) -> Callable[[FastMCP], Any]:
    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[ServerState]:
        """Server lifespan.

        Startup:
        - Create the cache database and tables
        - Sweep expired entries once, then periodically
        - Load credentials and build the AdSense facade

        Shutdown:
        - Stop background tasks
        - Close database connections
        """
        settings = state.settings
        logger.info("Starting MCP server", app_name=settings.app_name, version=settings.app_version)

        engine = create_engine(settings.resolved_database_url, echo=settings.db_echo)
        try:
            await init_db(engine)
            cache = ResponseCache(create_session_factory(engine))
            await cache.clear_expired()

            if settings.cache_sweep_interval_seconds > 0:
                state.background_tasks.append(
                    create_background_task(
                        run_periodically(
                            cache.clear_expired,
                            settings.cache_sweep_interval_seconds,
                            name="cache_sweep",
                        ),
                        name="cache_sweep",
                    )
                )

            state.service = build_service(settings, cache)
            logger.info("AdSense service ready")

            yield state
        finally:
            logger.info("Shutting down MCP server")
            for task in state.background_tasks:
                task.cancel()
            await asyncio.gather(*state.background_tasks, return_exceptions=True)
            state.background_tasks.clear()
            state.service = None
            await close_db(engine)

    return lifespan


def create_app(settings: Settings | None = None) -> FastMCP:
    """Create and configure the MCP server."""
    state = ServerState(settings=settings or get_settings())
    return create_server(state, lifespan=make_lifespan(state))


# Create application instance
app = create_app()
