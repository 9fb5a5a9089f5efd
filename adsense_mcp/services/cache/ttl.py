"""Report TTL policy: how long a report may be served from cache."""

from datetime import date, timedelta

from adsense_mcp.services.cache.constants import TTL_HISTORICAL, TTL_TODAY, TTL_YESTERDAY


def select_report_ttl(start_date: str, end_date: str, today: date | None = None) -> int:
    """Pick the cache TTL (ms) for a report covering ``start_date``..``end_date``.

    Dates are ISO ``YYYY-MM-DD`` strings compared against the local calendar
    day. A range touching today gets the shortest TTL; a range ending
    yesterday the medium one; anything older is considered settled.
    """
    today = today or date.today()
    today_str = today.isoformat()
    yesterday_str = (today - timedelta(days=1)).isoformat()

    if start_date == today_str or end_date == today_str:
        return TTL_TODAY

    if end_date == yesterday_str:
        return TTL_YESTERDAY

    return TTL_HISTORICAL
