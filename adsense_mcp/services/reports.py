"""Report helpers: date windows, request parameters, metric extraction, CSV.

Everything here is pure and synchronous; the facade owns the I/O.
"""

import base64
import binascii
import csv
import io
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Any

from adsense_mcp.schemas import ReportQuery

DEFAULT_REPORT_METRICS = [
    "ESTIMATED_EARNINGS",
    "IMPRESSIONS",
    "CLICKS",
    "PAGE_VIEWS",
    "PAGE_VIEWS_CTR",
    "PAGE_VIEWS_RPM",
]
DEFAULT_CSV_METRICS = DEFAULT_REPORT_METRICS[:4]
MAX_REPORT_ROWS = 100_000


# ============================================================
# Dates
# ============================================================

def today_local() -> date:
    return date.today()


def days_ago(n: int, today: date | None = None) -> str:
    """ISO date ``n`` calendar days before today."""
    return ((today or today_local()) - timedelta(days=n)).isoformat()


def earnings_windows(today: date | None = None) -> dict[str, tuple[str, str]]:
    """Date ranges for the earnings summary, keyed by period name.

    - today: today..today
    - yesterday: yesterday..yesterday
    - last_7_days: today-6..today
    - this_month: 1st of this month..today
    - last_month: 1st..last day of the previous month
    """
    today = today or today_local()
    yesterday = today - timedelta(days=1)
    this_month_start = today.replace(day=1)
    last_month_end = this_month_start - timedelta(days=1)
    last_month_start = last_month_end.replace(day=1)

    return {
        "today": (today.isoformat(), today.isoformat()),
        "yesterday": (yesterday.isoformat(), yesterday.isoformat()),
        "last_7_days": ((today - timedelta(days=6)).isoformat(), today.isoformat()),
        "this_month": (this_month_start.isoformat(), today.isoformat()),
        "last_month": (last_month_start.isoformat(), last_month_end.isoformat()),
    }


# ============================================================
# Request parameters
# ============================================================

def _date_parts(prefix: str, iso_date: str) -> dict[str, int]:
    parsed = date.fromisoformat(iso_date)
    return {
        f"{prefix}_year": parsed.year,
        f"{prefix}_month": parsed.month,
        f"{prefix}_day": parsed.day,
    }


def build_report_params(query: ReportQuery, account: str, *, csv_export: bool = False) -> dict[str, Any]:
    """Keyword arguments for ``accounts().reports().generate[Csv]()``.

    The discovery client flattens ``startDate.year`` into ``startDate_year``.
    CSV exports skip ordering and row limits.
    """
    params: dict[str, Any] = {
        "account": account,
        "dateRange": query.date_range,
        **_date_parts("startDate", query.start_date),
        **_date_parts("endDate", query.end_date),
    }

    if query.dimensions:
        params["dimensions"] = query.dimensions

    default_metrics = DEFAULT_CSV_METRICS if csv_export else DEFAULT_REPORT_METRICS
    params["metrics"] = query.metrics or default_metrics

    if csv_export:
        return params

    if query.order_by:
        if query.order_by.startswith("-"):
            params["orderBy"] = f"{query.order_by[1:]} DESC"
        else:
            params["orderBy"] = f"{query.order_by} ASC"

    if query.limit:
        params["limit"] = min(query.limit, MAX_REPORT_ROWS)

    return params


# ============================================================
# Metric extraction
# ============================================================

@dataclass
class EarningsPeriod:
    """Headline metrics for one date window. Missing metrics are 0."""

    earnings: float = 0.0
    impressions: float = 0.0
    clicks: float = 0.0
    ctr: float = 0.0
    rpm: float = 0.0
    page_views: float = 0.0


@dataclass
class EarningsSummary:
    today: EarningsPeriod
    yesterday: EarningsPeriod
    last_7_days: EarningsPeriod
    this_month: EarningsPeriod
    last_month: EarningsPeriod

    def to_dict(self) -> dict[str, dict[str, float]]:
        return asdict(self)


def header_names(report: dict[str, Any]) -> list[str]:
    return [h.get("name", "") for h in report.get("headers") or []]


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def aggregate_cells(report: dict[str, Any]) -> list[dict[str, Any]]:
    """Cells of the totals row, or of the first data row when no totals exist."""
    totals = report.get("totals") or {}
    if totals.get("cells"):
        return totals["cells"]
    rows = report.get("rows") or []
    if rows:
        return rows[0].get("cells") or []
    return []


def report_totals(report: dict[str, Any]) -> dict[str, float]:
    """Map each header to its aggregate value as a float (0 when unparseable)."""
    cells = aggregate_cells(report)
    totals = {}
    for i, name in enumerate(header_names(report)):
        cell = cells[i] if i < len(cells) else {}
        totals[name] = _to_float(cell.get("value"))
    return totals


def extract_earnings_period(report: dict[str, Any]) -> EarningsPeriod:
    totals = report_totals(report)

    def metric(name: str) -> float:
        return totals.get(name, 0.0)

    return EarningsPeriod(
        earnings=metric("ESTIMATED_EARNINGS"),
        impressions=metric("IMPRESSIONS"),
        clicks=metric("CLICKS"),
        ctr=metric("PAGE_VIEWS_CTR") or metric("IMPRESSIONS_CTR"),
        rpm=metric("PAGE_VIEWS_RPM") or metric("IMPRESSIONS_RPM"),
        page_views=metric("PAGE_VIEWS"),
    )


def rows_as_dicts(report: dict[str, Any]) -> list[dict[str, Any]]:
    """Convert positional report rows into header-keyed dicts."""
    headers = header_names(report)
    return [
        {headers[i]: cell.get("value") for i, cell in enumerate(row.get("cells") or []) if i < len(headers)}
        for row in report.get("rows") or []
    ]


def totals_as_dict(report: dict[str, Any]) -> dict[str, Any] | None:
    totals = report.get("totals")
    if not totals:
        return None
    headers = header_names(report)
    return {
        headers[i]: cell.get("value")
        for i, cell in enumerate(totals.get("cells") or [])
        if i < len(headers)
    }


def percent_change(current: float, previous: float) -> float | None:
    """Relative change in percent, or None when there is no baseline."""
    if previous <= 0:
        return None
    return (current - previous) / previous * 100


# ============================================================
# CSV
# ============================================================

def report_to_csv(report: dict[str, Any]) -> str:
    """Render a JSON report as CSV (header line plus one line per row)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header_names(report))
    for row in report.get("rows") or []:
        writer.writerow([cell.get("value", "") for cell in row.get("cells") or []])
    return buffer.getvalue().rstrip("\n")


def decode_csv_body(body: Any) -> str:
    """Extract CSV text from a ``generateCsv`` response.

    The API answers with an ``HttpBody`` (``{"contentType", "data"}`` where
    ``data`` is base64); plain strings and bytes are passed through.
    """
    if isinstance(body, bytes):
        return body.decode("utf-8")
    if isinstance(body, str):
        return body
    if isinstance(body, dict) and "data" in body:
        data = body["data"]
        try:
            return base64.b64decode(data, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return str(data)
    raise TypeError(f"Unexpected CSV response type: {type(body).__name__}")
