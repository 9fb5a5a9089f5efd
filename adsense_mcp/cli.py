# adsense_mcp/cli.py
import asyncio
import sys
from dataclasses import dataclass
from typing import Literal

from alembic.config import main as alembic_main

from adsense_mcp.core.config import Settings, get_settings
from adsense_mcp.core.exceptions import AppException
from adsense_mcp.db.session import check_db_health, close_db, create_engine, create_session_factory, init_db
from adsense_mcp.services.cache import ResponseCache


def serve() -> None:
    from adsense_mcp.main import app

    app.run()


def migrate() -> None:
    alembic_main(["upgrade", "head"])


def clear_cache() -> None:
    asyncio.run(_clear_cache(get_settings()))
    print("Cache cleared")


async def _clear_cache(settings: Settings) -> None:
    engine = create_engine(settings.resolved_database_url)
    try:
        await init_db(engine)
        await ResponseCache(create_session_factory(engine)).clear_all()
    finally:
        await close_db(engine)


@dataclass
class CheckResult:
    name: str
    status: Literal["pass", "warn", "fail"]
    message: str


async def run_checks(settings: Settings) -> list[CheckResult]:
    """Config dir, credentials, cache database, then a live account listing."""
    from adsense_mcp.main import build_service
    from adsense_mcp.services.auth import default_providers, load_credentials

    results: list[CheckResult] = []

    if settings.config_dir.is_dir():
        results.append(CheckResult("Config Directory", "pass", str(settings.config_dir)))
    else:
        results.append(CheckResult("Config Directory", "fail", f"Not found: {settings.config_dir}"))

    try:
        load_credentials(default_providers(settings))
        results.append(CheckResult("Authentication", "pass", f"{settings.auth_type} credentials found"))
    except AppException as e:
        results.append(CheckResult("Authentication", "fail", e.message))
        return results

    engine = create_engine(settings.resolved_database_url)
    try:
        await init_db(engine)
        if not await check_db_health(engine):
            results.append(CheckResult("Cache", "fail", "Cache database is not reachable"))
            return results
        cache = ResponseCache(create_session_factory(engine))
        stats = await cache.stats()
        results.append(CheckResult("Cache", "pass", f"{stats.total_entries} cached response(s)"))

        try:
            accounts = await build_service(settings, cache).list_accounts()
        except Exception as e:
            results.append(CheckResult("AdSense API", "fail", f"Failed: {e}"))
        else:
            if accounts:
                names = ", ".join(a["name"].removeprefix("accounts/") for a in accounts)
                results.append(CheckResult("AdSense API", "pass", f"Found {len(accounts)} account(s): {names}"))
            else:
                results.append(CheckResult("AdSense API", "warn", "No accounts found"))
    finally:
        await close_db(engine)

    return results


def doctor() -> None:
    results = asyncio.run(run_checks(get_settings()))

    print("AdSense MCP Server Health Check\n")
    for result in results:
        print(f"[{result.status.upper()}] {result.name}: {result.message}")

    if any(r.status == "fail" for r in results):
        sys.exit(1)
