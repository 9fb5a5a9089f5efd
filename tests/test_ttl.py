"""Tests for report TTL selection."""

from datetime import date

import pytest

from adsense_mcp.services.cache import (
    TTL_HISTORICAL,
    TTL_TODAY,
    TTL_YESTERDAY,
    select_report_ttl,
)

TODAY = date(2024, 6, 15)


@pytest.mark.parametrize(
    "start, end, expected",
    [
        ("2024-06-15", "2024-06-15", TTL_TODAY),
        ("2024-06-09", "2024-06-15", TTL_TODAY),
        ("2024-06-15", "2024-06-20", TTL_TODAY),
        ("2024-06-14", "2024-06-14", TTL_YESTERDAY),
        ("2024-05-01", "2024-06-14", TTL_YESTERDAY),
        ("2024-06-08", "2024-06-13", TTL_HISTORICAL),
        ("2023-01-01", "2023-12-31", TTL_HISTORICAL),
    ],
    ids=[
        "today-only",
        "range-ending-today",
        "range-starting-today",
        "yesterday-only",
        "range-ending-yesterday",
        "last-week-settled",
        "last-year",
    ],
)
def test_select_report_ttl(start: str, end: str, expected: int):
    assert select_report_ttl(start, end, today=TODAY) == expected


def test_today_beats_yesterday():
    # Starts today, so the end bound being yesterday never matters
    assert select_report_ttl("2024-06-15", "2024-06-14", today=TODAY) == TTL_TODAY


def test_defaults_to_local_calendar_day():
    today = date.today().isoformat()
    assert select_report_ttl(today, today) == TTL_TODAY


def test_ttl_ordering():
    assert TTL_TODAY < TTL_YESTERDAY < TTL_HISTORICAL
