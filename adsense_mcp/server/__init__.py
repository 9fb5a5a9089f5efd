"""MCP server wiring."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any

from fastmcp import FastMCP

from adsense_mcp.core.config import Settings
from adsense_mcp.server.resources import register_resources
from adsense_mcp.server.tools import register_tools
from adsense_mcp.services.adsense import AdSenseService


@dataclass
class ServerState:
    """Objects owned by the running server, filled in by the lifespan."""

    settings: Settings
    service: AdSenseService | None = None
    background_tasks: list[Any] = field(default_factory=list)

    def require_service(self) -> AdSenseService:
        if self.service is None:
            raise RuntimeError("AdSense service is not initialized")
        return self.service


def create_server(
    state: ServerState,
    lifespan: Callable[[FastMCP], AbstractAsyncContextManager[Any]] | None = None,
) -> FastMCP:
    """Create the FastMCP server and register tools and resources."""
    mcp = FastMCP(state.settings.app_name, lifespan=lifespan)
    register_tools(mcp, state.require_service, state.settings.tool_timeout_seconds)
    register_resources(mcp, state.require_service)
    return mcp


__all__ = ["ServerState", "create_server"]
