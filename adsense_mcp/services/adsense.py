"""AdSense API facade.

Every read goes through the same pipeline:

    resolve account -> cache lookup -> (miss) throttle + retry -> cache write

Cache hits never touch the throttle or the network. Upstream errors are
propagated unchanged and nothing is cached for a failed call.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any


from adsense_mcp.core.exceptions import NoAccountsFoundError
from adsense_mcp.core.logging import get_logger
from adsense_mcp.schemas import ReportQuery
from adsense_mcp.services.cache import (
    GLOBAL_ACCOUNT_TAG,
    KEY_PREFIX_ACCOUNTS,
    KEY_PREFIX_AD_UNITS,
    KEY_PREFIX_ALERTS,
    KEY_PREFIX_PAYMENTS,
    KEY_PREFIX_POLICY_ISSUES,
    KEY_PREFIX_REPORT,
    KEY_PREFIX_REPORT_CSV,
    KEY_PREFIX_SITES,
    TTL_ACCOUNTS,
    TTL_AD_UNITS,
    TTL_ALERTS,
    TTL_PAYMENTS,
    TTL_POLICY_ISSUES,
    TTL_SITES,
    ResponseCache,
    select_report_ttl,
)
from adsense_mcp.services.rate_limit import RequestThrottle
from adsense_mcp.services.reports import (
    EarningsSummary,
    build_report_params,
    decode_csv_body,
    earnings_windows,
    extract_earnings_period,
)
from adsense_mcp.services.retry import BackoffExecutor

logger = get_logger(__name__)

ACCOUNT_PREFIX = "accounts/"


def normalize_account_id(account_id: str) -> str:
    """``pub-123`` -> ``accounts/pub-123``; already-prefixed ids pass through."""
    account_id = account_id.strip()
    if account_id.startswith(ACCOUNT_PREFIX):
        return account_id
    return f"{ACCOUNT_PREFIX}{account_id}"


def publisher_id(account_name: str) -> str:
    """``accounts/pub-123`` -> ``pub-123``."""
    return account_name.removeprefix(ACCOUNT_PREFIX)


class AdSenseService:
    """Cached, throttled access to the AdSense Management API v2."""

    def __init__(
        self,
        resource: Any,
        cache: ResponseCache,
        throttle: RequestThrottle,
        executor: BackoffExecutor,
        default_account_id: str | None = None,
        http_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._resource = resource
        self.cache = cache
        self.throttle = throttle
        self._executor = executor
        self._default_account_id = default_account_id or None
        self._http_factory = http_factory

    # ==================== Plumbing ====================

    async def _execute(self, request: Any) -> Any:
        """Run one upstream request; each attempt is throttled separately."""

        async def attempt() -> Any:
            await self.throttle.throttle()
            if self._http_factory is not None:
                return await asyncio.to_thread(request.execute, http=self._http_factory())
            return await asyncio.to_thread(request.execute)

        return await self._executor.execute(attempt)

    async def _list_all(self, method: Callable[..., Any], items_key: str, **kwargs: Any) -> list[Any]:
        """Follow ``nextPageToken`` until the listing is exhausted."""
        items: list[Any] = []
        page_token: str | None = None

        while True:
            params = dict(kwargs)
            if page_token:
                params["pageToken"] = page_token
            response = await self._execute(method(**params)) or {}
            items.extend(response.get(items_key) or [])
            page_token = response.get("nextPageToken")
            if not page_token:
                return items

    async def _cached(
        self,
        prefix: str,
        params: dict[str, Any],
        ttl_ms: int,
        account_tag: str,
        fetch: Callable[[], Awaitable[Any]],
    ) -> Any:
        cached = await self.cache.get(prefix, params)
        if cached is not None:
            return cached

        started = time.perf_counter()
        result = await fetch()
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        await self.cache.set(prefix, params, result, ttl_ms, account_tag)
        await self.cache.record_query(account_tag, prefix, params, elapsed_ms)
        logger.info(
            "Fetched from AdSense API",
            operation=prefix,
            account_id=account_tag,
            elapsed_ms=elapsed_ms,
        )
        return result

    async def resolve_account_id(self, account_id: str | None = None) -> str:
        """Explicit id > configured default > first listed account."""
        if account_id:
            return normalize_account_id(account_id)

        if self._default_account_id:
            return normalize_account_id(self._default_account_id)

        accounts = await self.list_accounts()
        if not accounts:
            raise NoAccountsFoundError()
        return accounts[0]["name"]

    # ==================== Accounts ====================

    async def list_accounts(self) -> list[dict[str, Any]]:
        return await self._cached(
            KEY_PREFIX_ACCOUNTS,
            {},
            TTL_ACCOUNTS,
            GLOBAL_ACCOUNT_TAG,
            lambda: self._list_all(self._resource.accounts().list, "accounts"),
        )

    async def get_account(self, account_id: str | None = None) -> dict[str, Any]:
        """Fetch one account (uncached). Upstream errors propagate."""
        account = await self.resolve_account_id(account_id)
        return await self._execute(self._resource.accounts().get(name=account))

    # ==================== Account-scoped listings ====================

    async def _account_listing(
        self,
        account_id: str | None,
        prefix: str,
        ttl_ms: int,
        collection: Callable[[], Any],
        items_key: str,
    ) -> list[dict[str, Any]]:
        account = await self.resolve_account_id(account_id)
        return await self._cached(
            prefix,
            {"accountId": account},
            ttl_ms,
            account,
            lambda: self._list_all(collection().list, items_key, parent=account),
        )

    async def list_sites(self, account_id: str | None = None) -> list[dict[str, Any]]:
        return await self._account_listing(
            account_id,
            KEY_PREFIX_SITES,
            TTL_SITES,
            lambda: self._resource.accounts().sites(),
            "sites",
        )

    async def list_alerts(self, account_id: str | None = None) -> list[dict[str, Any]]:
        return await self._account_listing(
            account_id,
            KEY_PREFIX_ALERTS,
            TTL_ALERTS,
            lambda: self._resource.accounts().alerts(),
            "alerts",
        )

    async def list_policy_issues(self, account_id: str | None = None) -> list[dict[str, Any]]:
        return await self._account_listing(
            account_id,
            KEY_PREFIX_POLICY_ISSUES,
            TTL_POLICY_ISSUES,
            lambda: self._resource.accounts().policyIssues(),
            "policyIssues",
        )

    async def list_payments(self, account_id: str | None = None) -> list[dict[str, Any]]:
        return await self._account_listing(
            account_id,
            KEY_PREFIX_PAYMENTS,
            TTL_PAYMENTS,
            lambda: self._resource.accounts().payments(),
            "payments",
        )

    # ==================== Ad clients / ad units ====================

    async def list_ad_clients(self, account_id: str | None = None) -> list[dict[str, Any]]:
        account = await self.resolve_account_id(account_id)
        return await self._list_all(
            self._resource.accounts().adclients().list, "adClients", parent=account
        )

    async def list_ad_units(self, account_id: str | None = None) -> list[dict[str, Any]]:
        """Ad units across every ad client of the account."""
        account = await self.resolve_account_id(account_id)

        async def fetch() -> list[dict[str, Any]]:
            ad_units: list[dict[str, Any]] = []
            for client in await self.list_ad_clients(account):
                ad_units.extend(
                    await self._list_all(
                        self._resource.accounts().adclients().adunits().list,
                        "adUnits",
                        parent=client["name"],
                    )
                )
            return ad_units

        return await self._cached(
            KEY_PREFIX_AD_UNITS, {"accountId": account}, TTL_AD_UNITS, account, fetch
        )

    async def get_ad_code(
        self, ad_client_id: str, ad_unit_id: str, account_id: str | None = None
    ) -> str:
        account = await self.resolve_account_id(account_id)
        name = f"{account}/adclients/{ad_client_id}/adunits/{ad_unit_id}"
        response = await self._execute(
            self._resource.accounts().adclients().adunits().getAdcode(name=name)
        )
        return (response or {}).get("adCode", "")

    # ==================== Reports ====================

    async def generate_report(self, query: ReportQuery) -> dict[str, Any]:
        account = await self.resolve_account_id(query.account_id)
        params = build_report_params(query, account)
        return await self._cached(
            KEY_PREFIX_REPORT,
            query.cache_params(account),
            select_report_ttl(query.start_date, query.end_date),
            account,
            lambda: self._execute(self._resource.accounts().reports().generate(**params)),
        )

    async def generate_csv_report(self, query: ReportQuery) -> str:
        account = await self.resolve_account_id(query.account_id)
        params = build_report_params(query, account, csv_export=True)

        async def fetch() -> str:
            body = await self._execute(self._resource.accounts().reports().generateCsv(**params))
            return decode_csv_body(body)

        return await self._cached(
            KEY_PREFIX_REPORT_CSV,
            query.cache_params(account),
            select_report_ttl(query.start_date, query.end_date),
            account,
            fetch,
        )

    async def get_earnings_summary(self, account_id: str | None = None) -> EarningsSummary:
        """Today, yesterday, last 7 days, month to date and last month, fetched concurrently."""
        account = await self.resolve_account_id(account_id)
        windows = earnings_windows()

        reports = await asyncio.gather(
            *(
                self.generate_report(ReportQuery(account_id=account, start_date=start, end_date=end))
                for start, end in windows.values()
            )
        )

        return EarningsSummary(
            **{
                period: extract_earnings_period(report)
                for period, report in zip(windows, reports, strict=True)
            }
        )

    # ==================== Cache management ====================

    async def clear_account_cache(self, account_id: str) -> int:
        return await self.cache.clear_account(normalize_account_id(account_id))
