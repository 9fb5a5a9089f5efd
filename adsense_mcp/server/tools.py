"""MCP tools.

Each tool is a thin wrapper: build the query, call the facade, shape the
result into a dict the assistant can read. The ``*_tool`` coroutines take
the facade explicitly so they can be exercised without a running server.
"""

import asyncio
from collections import Counter
from collections.abc import Awaitable, Callable
from typing import Any

import pydantic
from fastmcp import FastMCP
from googleapiclient.errors import HttpError

from adsense_mcp.core.exceptions import ValidationError
from adsense_mcp.core.logging import get_logger
from adsense_mcp.schemas import PeriodComparisonQuery, ReportQuery
from adsense_mcp.services.adsense import AdSenseService, publisher_id
from adsense_mcp.services.reports import (
    days_ago,
    percent_change,
    report_to_csv,
    report_totals,
    rows_as_dicts,
    totals_as_dict,
)

logger = get_logger(__name__)

DEFAULT_REPORT_LIMIT = 100
CSV_FALLBACK_LIMIT = 10_000

SITE_STATE_DESCRIPTIONS = {
    "READY": "Approved and serving ads",
    "GETTING_READY": "Under review by Google (may take 1-2 weeks)",
    "NEEDS_ATTENTION": "Issues to fix before approval",
    "REQUIRES_REVIEW": "Site needs review or is inactive",
}

ALERT_SEVERITY_DESCRIPTIONS = {
    "SEVERE": "Immediate action required (payment holds, violations)",
    "WARNING": "Action recommended",
    "INFO": "General notifications",
}

POLICY_ACTION_DESCRIPTIONS = {
    "WARNED": "Pending enforcement with deadline - fix before escalation",
    "AD_SERVING_RESTRICTED": "Reduced ad demand on affected pages",
    "AD_SERVING_DISABLED": "Ads completely stopped on affected pages",
    "AD_SERVED_WITH_CLICK_CONFIRMATION": "Extra click verification required",
    "AD_PERSONALIZATION_RESTRICTED": "Limited to basic (non-personalized) ads",
}


# ============================================================
# Formatting helpers
# ============================================================

def _format_currency(value: float) -> str:
    return f"${value:.2f}"


def _format_percent_ratio(value: float) -> str:
    return f"{value * 100:.2f}%"


def _format_change(value: float | None) -> str:
    return "N/A" if value is None else f"{value:.1f}%"


def _format_date(value: dict[str, int] | None) -> str | None:
    if not value:
        return None
    return f"{value['year']}-{value['month']:02d}-{value['day']:02d}"


def _invalid(message: str, error: pydantic.ValidationError) -> ValidationError:
    return ValidationError(message, {"errors": error.errors(include_url=False, include_context=False)})


def _report_query(**kwargs: Any) -> ReportQuery:
    try:
        return ReportQuery(**kwargs)
    except pydantic.ValidationError as e:
        raise _invalid("Invalid report parameters", e) from e


# ============================================================
# Tool implementations
# ============================================================

async def list_accounts_tool(service: AdSenseService) -> dict[str, Any]:
    accounts = await service.list_accounts()
    return {
        "accounts": [
            {
                "id": publisher_id(account["name"]),
                "name": account["name"],
                "display_name": account.get("displayName") or "Unnamed Account",
                "time_zone": (account.get("timeZone") or {}).get("id", "Unknown"),
                "create_time": account.get("createTime"),
                "premium": account.get("premium", False),
            }
            for account in accounts
        ],
        "total": len(accounts),
    }


async def earnings_summary_tool(
    service: AdSenseService, account_id: str | None = None
) -> dict[str, Any]:
    summary = await service.get_earnings_summary(account_id)
    raw = summary.to_dict()

    formatted = {
        period: {
            "earnings": _format_currency(values["earnings"]),
            "impressions": f"{int(values['impressions']):,}",
            "clicks": f"{int(values['clicks']):,}",
            "ctr": _format_percent_ratio(values["ctr"]),
            "rpm": _format_currency(values["rpm"]),
            "page_views": f"{int(values['page_views']):,}",
        }
        for period, values in raw.items()
    }

    return {
        "summary": formatted,
        "raw": raw,
        "comparison": {
            "vs_yesterday": _format_change(
                percent_change(summary.today.earnings, summary.yesterday.earnings)
            ),
            "vs_last_month": _format_change(
                percent_change(summary.this_month.earnings, summary.last_month.earnings)
            ),
        },
    }


async def generate_report_tool(
    service: AdSenseService,
    account_id: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    dimensions: list[str] | None = None,
    metrics: list[str] | None = None,
    order_by: str | None = None,
    limit: int | None = None,
) -> dict[str, Any]:
    """Defaults to the seven days ending yesterday, 100 rows."""
    query = _report_query(
        account_id=account_id,
        start_date=start_date or days_ago(7),
        end_date=end_date or days_ago(1),
        dimensions=dimensions,
        metrics=metrics,
        order_by=order_by,
        limit=limit or DEFAULT_REPORT_LIMIT,
    )
    report = await service.generate_report(query)
    rows = rows_as_dicts(report)

    return {
        "date_range": {"start": query.start_date, "end": query.end_date},
        "headers": [h.get("name") for h in report.get("headers") or []],
        "rows": rows,
        "totals": totals_as_dict(report),
        "total_rows": report.get("totalMatchedRows") or str(len(rows)),
    }


async def compare_periods_tool(
    service: AdSenseService,
    period1_start: str,
    period1_end: str,
    period2_start: str,
    period2_end: str,
    account_id: str | None = None,
    dimensions: list[str] | None = None,
) -> dict[str, Any]:
    try:
        periods = PeriodComparisonQuery(
            period1_start=period1_start,
            period1_end=period1_end,
            period2_start=period2_start,
            period2_end=period2_end,
            dimensions=dimensions,
        )
    except pydantic.ValidationError as e:
        raise _invalid("Invalid period dates", e) from e

    first, second = await asyncio.gather(
        service.generate_report(
            _report_query(
                account_id=account_id,
                start_date=periods.period1_start,
                end_date=periods.period1_end,
                dimensions=periods.dimensions,
            )
        ),
        service.generate_report(
            _report_query(
                account_id=account_id,
                start_date=periods.period2_start,
                end_date=periods.period2_end,
                dimensions=periods.dimensions,
            )
        ),
    )
    first_totals = report_totals(first)
    second_totals = report_totals(second)

    changes = {}
    for metric, value1 in first_totals.items():
        value2 = second_totals.get(metric, 0.0)
        diff = value1 - value2
        pct = diff / value2 * 100 if value2 else 0.0
        changes[metric] = {
            "period1": value1,
            "period2": value2,
            "change": f"{diff:+.2f}",
            "change_percent": f"{pct:+.1f}%",
        }

    return {
        "period1": {"start": periods.period1_start, "end": periods.period1_end, "totals": first_totals},
        "period2": {"start": periods.period2_start, "end": periods.period2_end, "totals": second_totals},
        "changes": changes,
    }


async def list_sites_tool(service: AdSenseService, account_id: str | None = None) -> dict[str, Any]:
    sites = await service.list_sites(account_id)
    states = Counter(site.get("state", "STATE_UNSPECIFIED") for site in sites)
    return {
        "sites": [
            {
                "domain": site.get("domain"),
                "status": site.get("state"),
                "auto_ads_enabled": site.get("autoAdsEnabled", False),
                "name": site.get("name"),
            }
            for site in sites
        ],
        "summary": {"total": len(sites), **{state: states.get(state, 0) for state in SITE_STATE_DESCRIPTIONS}},
        "status_descriptions": SITE_STATE_DESCRIPTIONS,
    }


async def list_alerts_tool(service: AdSenseService, account_id: str | None = None) -> dict[str, Any]:
    alerts = await service.list_alerts(account_id)
    severities = Counter(alert.get("severity", "SEVERITY_UNSPECIFIED") for alert in alerts)
    return {
        "alerts": [
            {
                "message": alert.get("message"),
                "severity": alert.get("severity"),
                "type": alert.get("type"),
                "name": alert.get("name"),
            }
            for alert in alerts
        ],
        "summary": {
            "total": len(alerts),
            **{severity: severities.get(severity, 0) for severity in ALERT_SEVERITY_DESCRIPTIONS},
        },
        "has_issues": bool(severities.get("SEVERE") or severities.get("WARNING")),
        "severity_descriptions": ALERT_SEVERITY_DESCRIPTIONS,
    }


async def list_policy_issues_tool(
    service: AdSenseService, account_id: str | None = None
) -> dict[str, Any]:
    issues = await service.list_policy_issues(account_id)
    actions = Counter(issue.get("action", "ENFORCEMENT_ACTION_UNSPECIFIED") for issue in issues)
    return {
        "issues": [
            {
                "site": issue.get("site"),
                "site_section": issue.get("siteSection"),
                "uri": issue.get("uri"),
                "entity_type": issue.get("entityType"),
                "action": issue.get("action"),
                "ad_request_count": issue.get("adRequestCount"),
                "warning_escalation_date": _format_date(issue.get("warningEscalationDate")),
                "name": issue.get("name"),
            }
            for issue in issues
        ],
        "summary": {
            "total": len(issues),
            **{action: actions.get(action, 0) for action in POLICY_ACTION_DESCRIPTIONS},
        },
        "has_issues": bool(issues),
        "action_descriptions": POLICY_ACTION_DESCRIPTIONS,
    }


def _payment_type(name: str) -> str:
    if "unpaid" in name:
        return "unpaid"
    if "youtube" in name:
        return "youtube"
    return "payment"


def _amount_value(amount: str | None) -> float:
    digits = "".join(ch for ch in amount or "" if ch.isdigit() or ch == ".")
    try:
        return float(digits)
    except ValueError:
        return 0.0


async def list_payments_tool(service: AdSenseService, account_id: str | None = None) -> dict[str, Any]:
    payments = await service.list_payments(account_id)

    def fmt(payment: dict[str, Any]) -> dict[str, Any]:
        return {
            "amount": payment.get("amount") or "N/A",
            "date": _format_date(payment.get("date")),
            "type": _payment_type(payment.get("name") or ""),
            "name": payment.get("name"),
        }

    unpaid = [p for p in payments if "unpaid" in (p.get("name") or "")]
    paid = [p for p in payments if "unpaid" not in (p.get("name") or "")]

    return {
        "payments": [fmt(p) for p in payments],
        "summary": {
            "total_payments": len(paid),
            "unpaid_balance": unpaid[0].get("amount", "N/A") if unpaid else "N/A",
            "total_paid_all_time": _format_currency(sum(_amount_value(p.get("amount")) for p in paid)),
        },
        "unpaid": [fmt(p) for p in unpaid],
        "paid": [fmt(p) for p in paid],
    }


async def list_ad_units_tool(service: AdSenseService, account_id: str | None = None) -> dict[str, Any]:
    ad_units = await service.list_ad_units(account_id)

    def fmt(unit: dict[str, Any]) -> dict[str, Any]:
        # accounts/{pub}/adclients/{client}/adunits/{unit}
        parts = unit.get("name", "").split("/")
        settings = unit.get("contentAdsSettings") or {}
        return {
            "display_name": unit.get("displayName"),
            "state": unit.get("state"),
            "type": settings.get("type", "UNKNOWN"),
            "size": settings.get("size", "Auto"),
            "ad_client_id": parts[3] if len(parts) > 3 else "",
            "ad_unit_id": parts[5] if len(parts) > 5 else "",
            "name": unit.get("name"),
            "reporting_dimension_id": unit.get("reportingDimensionId"),
        }

    by_type = Counter((u.get("contentAdsSettings") or {}).get("type", "UNKNOWN") for u in ad_units)
    return {
        "ad_units": [fmt(u) for u in ad_units],
        "summary": {
            "total": len(ad_units),
            "active": sum(1 for u in ad_units if u.get("state") == "ACTIVE"),
            "archived": sum(1 for u in ad_units if u.get("state") == "ARCHIVED"),
            "by_type": dict(by_type),
        },
    }


async def get_ad_code_tool(
    service: AdSenseService,
    ad_client_id: str,
    ad_unit_id: str,
    account_id: str | None = None,
) -> dict[str, Any]:
    if not ad_client_id or not ad_unit_id:
        raise ValidationError("ad_client_id and ad_unit_id are required")
    ad_code = await service.get_ad_code(ad_client_id, ad_unit_id, account_id)
    return {"ad_code": ad_code, "ad_client_id": ad_client_id, "ad_unit_id": ad_unit_id}


async def export_csv_tool(
    service: AdSenseService,
    start_date: str,
    end_date: str,
    account_id: str | None = None,
    dimensions: list[str] | None = None,
    metrics: list[str] | None = None,
) -> dict[str, Any]:
    """CSV straight from the API, or rendered locally from the JSON report."""
    query = _report_query(
        account_id=account_id,
        start_date=start_date,
        end_date=end_date,
        dimensions=dimensions,
        metrics=metrics,
    )
    date_range = {"start": start_date, "end": end_date}

    try:
        data = await service.generate_csv_report(query)
        return {"format": "csv", "date_range": date_range, "data": data}
    except (HttpError, TypeError) as e:
        logger.warning("CSV export failed, rendering from JSON report", error=str(e))

    report = await service.generate_report(query.model_copy(update={"limit": CSV_FALLBACK_LIMIT}))
    return {
        "format": "csv",
        "date_range": date_range,
        "data": report_to_csv(report),
        "row_count": len(report.get("rows") or []),
    }


async def cache_stats_tool(service: AdSenseService) -> dict[str, Any]:
    stats = await service.cache.stats()
    return {
        "total_entries": stats.total_entries,
        "total_size_bytes": stats.total_size,
        "expired_entries": stats.expired_count,
        "requests_last_minute": service.throttle.request_count(),
        "near_rate_limit": service.throttle.is_near_limit(),
    }


async def clear_cache_tool(service: AdSenseService, account_id: str | None = None) -> dict[str, Any]:
    if account_id:
        removed = await service.clear_account_cache(account_id)
        return {"cleared": "account", "account_id": account_id, "removed": removed}
    await service.cache.clear_all()
    return {"cleared": "all"}


# ============================================================
# Registration
# ============================================================

def register_tools(
    mcp: FastMCP,
    get_service: Callable[[], AdSenseService],
    timeout_seconds: float,
) -> None:
    """Register every tool on ``mcp``; each call is bounded by ``timeout_seconds``."""

    async def run(name: str, call: Callable[[AdSenseService], Awaitable[dict[str, Any]]]) -> dict[str, Any]:
        logger.info("Tool called", tool=name)
        try:
            async with asyncio.timeout(timeout_seconds):
                return await call(get_service())
        except Exception as e:
            logger.error("Tool failed", tool=name, error=str(e), error_type=type(e).__name__)
            raise

    @mcp.tool()
    async def adsense_list_accounts() -> dict[str, Any]:
        """List all AdSense accounts you have access to."""
        return await run("adsense_list_accounts", list_accounts_tool)

    @mcp.tool()
    async def adsense_earnings_summary(account_id: str | None = None) -> dict[str, Any]:
        """Quick earnings summary: today, yesterday, last 7 days, this month, last month."""
        return await run("adsense_earnings_summary", lambda s: earnings_summary_tool(s, account_id))

    @mcp.tool()
    async def adsense_generate_report(
        account_id: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        dimensions: list[str] | None = None,
        metrics: list[str] | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Detailed performance report with custom dimensions and metrics.

        Dates are YYYY-MM-DD; defaults to the last 7 days ending yesterday.
        Prefix order_by with '-' for descending order.
        """
        return await run(
            "adsense_generate_report",
            lambda s: generate_report_tool(
                s, account_id, start_date, end_date, dimensions, metrics, order_by, limit
            ),
        )

    @mcp.tool()
    async def adsense_compare_periods(
        period1_start: str,
        period1_end: str,
        period2_start: str,
        period2_end: str,
        account_id: str | None = None,
        dimensions: list[str] | None = None,
    ) -> dict[str, Any]:
        """Compare totals between two date ranges (YYYY-MM-DD)."""
        return await run(
            "adsense_compare_periods",
            lambda s: compare_periods_tool(
                s, period1_start, period1_end, period2_start, period2_end, account_id, dimensions
            ),
        )

    @mcp.tool()
    async def adsense_list_sites(account_id: str | None = None) -> dict[str, Any]:
        """List sites with their approval status."""
        return await run("adsense_list_sites", lambda s: list_sites_tool(s, account_id))

    @mcp.tool()
    async def adsense_list_alerts(account_id: str | None = None) -> dict[str, Any]:
        """List account alerts grouped by severity."""
        return await run("adsense_list_alerts", lambda s: list_alerts_tool(s, account_id))

    @mcp.tool()
    async def adsense_list_policy_issues(account_id: str | None = None) -> dict[str, Any]:
        """List policy issues and their enforcement actions."""
        return await run("adsense_list_policy_issues", lambda s: list_policy_issues_tool(s, account_id))

    @mcp.tool()
    async def adsense_list_payments(account_id: str | None = None) -> dict[str, Any]:
        """List payments and the unpaid balance."""
        return await run("adsense_list_payments", lambda s: list_payments_tool(s, account_id))

    @mcp.tool()
    async def adsense_list_ad_units(account_id: str | None = None) -> dict[str, Any]:
        """List ad units across all ad clients."""
        return await run("adsense_list_ad_units", lambda s: list_ad_units_tool(s, account_id))

    @mcp.tool()
    async def adsense_get_ad_code(
        ad_client_id: str, ad_unit_id: str, account_id: str | None = None
    ) -> dict[str, Any]:
        """Get the HTML embed code for an ad unit."""
        return await run(
            "adsense_get_ad_code",
            lambda s: get_ad_code_tool(s, ad_client_id, ad_unit_id, account_id),
        )

    @mcp.tool()
    async def adsense_export_csv(
        start_date: str,
        end_date: str,
        account_id: str | None = None,
        dimensions: list[str] | None = None,
        metrics: list[str] | None = None,
    ) -> dict[str, Any]:
        """Export a report as CSV."""
        return await run(
            "adsense_export_csv",
            lambda s: export_csv_tool(s, start_date, end_date, account_id, dimensions, metrics),
        )

    @mcp.tool()
    async def adsense_cache_stats() -> dict[str, Any]:
        """Local cache size and current request rate."""
        return await run("adsense_cache_stats", cache_stats_tool)

    @mcp.tool()
    async def adsense_clear_cache(account_id: str | None = None) -> dict[str, Any]:
        """Clear cached responses for one account, or everything when no account is given."""
        return await run("adsense_clear_cache", lambda s: clear_cache_tool(s, account_id))
