"""MCP resources: read-only JSON views over the facade."""

from collections.abc import Callable

import orjson
from fastmcp import FastMCP

from adsense_mcp.services.adsense import AdSenseService


def _to_json(data: object) -> str:
    return orjson.dumps(data, option=orjson.OPT_INDENT_2).decode()


def register_resources(mcp: FastMCP, get_service: Callable[[], AdSenseService]) -> None:
    @mcp.resource(
        "adsense://accounts",
        name="AdSense Accounts",
        description="List of all AdSense accounts you have access to",
        mime_type="application/json",
    )
    async def accounts() -> str:
        return _to_json(await get_service().list_accounts())

    @mcp.resource(
        "adsense://accounts/{account_id}/sites",
        name="AdSense Sites",
        description="Sites registered under an account",
        mime_type="application/json",
    )
    async def account_sites(account_id: str) -> str:
        return _to_json(await get_service().list_sites(account_id))

    @mcp.resource(
        "adsense://accounts/{account_id}/adunits",
        name="AdSense Ad Units",
        description="Ad units across all ad clients of an account",
        mime_type="application/json",
    )
    async def account_ad_units(account_id: str) -> str:
        return _to_json(await get_service().list_ad_units(account_id))
