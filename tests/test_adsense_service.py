"""Tests for AdSenseService caching, pagination and account resolution."""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from googleapiclient.errors import HttpError
from sqlalchemy import select

from adsense_mcp.core.exceptions import NoAccountsFoundError
from adsense_mcp.db.models import QueryHistory
from adsense_mcp.schemas import ReportQuery
from adsense_mcp.services.adsense import AdSenseService, normalize_account_id, publisher_id
from adsense_mcp.services.cache import KEY_PREFIX_SITES
from adsense_mcp.services.rate_limit import RequestThrottle
from adsense_mcp.services.retry import BackoffExecutor
from tests.conftest import http_error

ACCOUNT = "accounts/pub-1111"
OTHER = "accounts/pub-2222"

EARNINGS_REPORT = {
    "headers": [
        {"name": "ESTIMATED_EARNINGS"},
        {"name": "IMPRESSIONS"},
        {"name": "CLICKS"},
        {"name": "PAGE_VIEWS"},
        {"name": "PAGE_VIEWS_CTR"},
        {"name": "PAGE_VIEWS_RPM"},
    ],
    "totals": {
        "cells": [
            {"value": "12.34"},
            {"value": "1000"},
            {"value": "25"},
            {"value": "800"},
            {"value": "0.03125"},
            {"value": "15.42"},
        ]
    },
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _no_sleep(seconds: float) -> None:
    return None


def _accounts(resource: MagicMock) -> MagicMock:
    return resource.accounts.return_value


def _set_accounts(resource: MagicMock, *names: str) -> MagicMock:
    execute = _accounts(resource).list.return_value.execute
    execute.return_value = {"accounts": [{"name": n, "displayName": n} for n in names]}
    return execute


@pytest.fixture
def throttle(fake_time) -> RequestThrottle:
    return RequestThrottle(clock=fake_time.clock, sleep=fake_time.sleep)


@pytest.fixture
def service(resource, cache, throttle) -> AdSenseService:
    return AdSenseService(
        resource,
        cache,
        throttle,
        BackoffExecutor(sleep=_no_sleep, rng=lambda: 0.0),
    )


# ---------------------------------------------------------------------------
# Account ids
# ---------------------------------------------------------------------------

class TestAccountIds:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("pub-1111", ACCOUNT),
            (ACCOUNT, ACCOUNT),
            ("  pub-1111 ", ACCOUNT),
        ],
    )
    def test_normalize(self, raw: str, expected: str):
        assert normalize_account_id(raw) == expected

    def test_publisher_id(self):
        assert publisher_id(ACCOUNT) == "pub-1111"

    async def test_explicit_id_wins(self, service, resource):
        assert await service.resolve_account_id("pub-9") == "accounts/pub-9"
        _accounts(resource).list.assert_not_called()

    async def test_configured_default(self, resource, cache, throttle):
        service = AdSenseService(
            resource, cache, throttle, BackoffExecutor(sleep=_no_sleep), default_account_id="pub-2222"
        )
        assert await service.resolve_account_id() == OTHER
        _accounts(resource).list.assert_not_called()

    async def test_falls_back_to_first_account(self, service, resource):
        _set_accounts(resource, ACCOUNT, OTHER)
        assert await service.resolve_account_id() == ACCOUNT

    async def test_no_accounts(self, service, resource):
        _set_accounts(resource)
        with pytest.raises(NoAccountsFoundError):
            await service.resolve_account_id()


# ---------------------------------------------------------------------------
# Caching pipeline
# ---------------------------------------------------------------------------

class TestCaching:
    async def test_second_call_is_served_from_cache(self, service, resource, throttle):
        execute = _set_accounts(resource, ACCOUNT)

        first = await service.list_accounts()
        second = await service.list_accounts()

        assert first == second
        assert execute.call_count == 1
        assert throttle.request_count() == 1

    async def test_cached_empty_listing_is_a_hit(self, service, resource):
        execute = _accounts(resource).sites.return_value.list.return_value.execute
        execute.return_value = {}

        assert await service.list_sites(ACCOUNT) == []
        assert await service.list_sites(ACCOUNT) == []
        assert execute.call_count == 1

    async def test_accounts_are_isolated(self, service, resource):
        execute = _accounts(resource).sites.return_value.list.return_value.execute
        execute.side_effect = [
            {"sites": [{"name": f"{ACCOUNT}/sites/a.com"}]},
            {"sites": [{"name": f"{OTHER}/sites/b.com"}]},
        ]

        a = await service.list_sites(ACCOUNT)
        b = await service.list_sites("pub-2222")

        assert a[0]["name"].startswith(ACCOUNT)
        assert b[0]["name"].startswith(OTHER)
        assert execute.call_count == 2

    async def test_failure_is_not_cached(self, service, resource, cache):
        execute = _accounts(resource).alerts.return_value.list.return_value.execute
        execute.side_effect = http_error(403, b"forbidden")

        with pytest.raises(HttpError):
            await service.list_alerts(ACCOUNT)

        assert await cache.get("alerts", {"accountId": ACCOUNT}) is None
        assert (await cache.stats()).total_entries == 0

    async def test_network_fetch_is_recorded(self, service, resource, session_factory):
        _accounts(resource).payments.return_value.list.return_value.execute.return_value = {
            "payments": [{"name": f"{ACCOUNT}/payments/unpaid", "amount": "$5.00"}]
        }

        await service.list_payments(ACCOUNT)
        await service.list_payments(ACCOUNT)

        async with session_factory() as session:
            rows = (await session.execute(select(QueryHistory))).scalars().all()
        assert len(rows) == 1
        assert rows[0].account_id == ACCOUNT
        assert rows[0].tool_name == "payments"

    async def test_clear_account_cache_normalizes(self, service, resource, cache):
        _accounts(resource).sites.return_value.list.return_value.execute.return_value = {"sites": []}
        await service.list_sites(ACCOUNT)

        assert await service.clear_account_cache("pub-1111") == 1
        assert await cache.get(KEY_PREFIX_SITES, {"accountId": ACCOUNT}) is None


# ---------------------------------------------------------------------------
# Upstream calls
# ---------------------------------------------------------------------------

class TestUpstream:
    async def test_follows_page_tokens(self, service, resource):
        listing = _accounts(resource).policyIssues.return_value.list
        listing.return_value.execute.side_effect = [
            {"policyIssues": [{"name": "i1"}], "nextPageToken": "p2"},
            {"policyIssues": [{"name": "i2"}], "nextPageToken": "p3"},
            {"policyIssues": [{"name": "i3"}]},
        ]

        issues = await service.list_policy_issues(ACCOUNT)

        assert [i["name"] for i in issues] == ["i1", "i2", "i3"]
        assert listing.call_args_list[0].kwargs == {"parent": ACCOUNT}
        assert listing.call_args_list[1].kwargs == {"parent": ACCOUNT, "pageToken": "p2"}
        assert listing.call_args_list[2].kwargs == {"parent": ACCOUNT, "pageToken": "p3"}

    async def test_every_attempt_is_throttled(self, service, resource, throttle):
        execute = _accounts(resource).sites.return_value.list.return_value.execute
        execute.side_effect = [http_error(503), {"sites": []}]

        assert await service.list_sites(ACCOUNT) == []
        assert execute.call_count == 2
        assert throttle.request_count() == 2

    async def test_non_retryable_error_propagates_unchanged(self, service, resource):
        error = http_error(404)
        _accounts(resource).sites.return_value.list.return_value.execute.side_effect = error

        with pytest.raises(HttpError) as exc_info:
            await service.list_sites(ACCOUNT)
        assert exc_info.value is error

    async def test_http_factory_is_used_per_request(self, resource, cache, throttle):
        transports = []

        def factory():
            transports.append(object())
            return transports[-1]

        service = AdSenseService(
            resource, cache, throttle, BackoffExecutor(sleep=_no_sleep), http_factory=factory
        )
        execute = _set_accounts(resource, ACCOUNT)

        await service.list_accounts()

        assert execute.call_args.kwargs == {"http": transports[0]}

    async def test_get_account_propagates_not_found(self, service, resource):
        error = http_error(404)
        _accounts(resource).get.return_value.execute.side_effect = error

        with pytest.raises(HttpError) as exc_info:
            await service.get_account(ACCOUNT)
        assert exc_info.value is error

    async def test_get_account_raises_after_exhausted_retries(self, service, resource):
        execute = _accounts(resource).get.return_value.execute
        execute.side_effect = http_error(429)

        with pytest.raises(HttpError) as exc_info:
            await service.get_account("pub-1111")
        assert exc_info.value.resp.status == 429
        assert execute.call_count == 5

    async def test_get_account(self, service, resource):
        _accounts(resource).get.return_value.execute.return_value = {"name": ACCOUNT}
        assert await service.get_account("pub-1111") == {"name": ACCOUNT}
        _accounts(resource).get.assert_called_with(name=ACCOUNT)


# ---------------------------------------------------------------------------
# Ad units
# ---------------------------------------------------------------------------

class TestAdUnits:
    async def test_fans_out_over_ad_clients_and_caches(self, service, resource):
        adclients = _accounts(resource).adclients.return_value
        adclients.list.return_value.execute.return_value = {
            "adClients": [{"name": f"{ACCOUNT}/adclients/ca-1"}, {"name": f"{ACCOUNT}/adclients/ca-2"}]
        }
        unit_list = adclients.adunits.return_value.list
        unit_list.return_value.execute.side_effect = [
            {"adUnits": [{"name": f"{ACCOUNT}/adclients/ca-1/adunits/u1"}]},
            {"adUnits": [{"name": f"{ACCOUNT}/adclients/ca-2/adunits/u2"}]},
        ]

        units = await service.list_ad_units(ACCOUNT)
        again = await service.list_ad_units(ACCOUNT)

        assert [u["name"].rsplit("/", 1)[-1] for u in units] == ["u1", "u2"]
        assert again == units
        assert [c.kwargs["parent"] for c in unit_list.call_args_list] == [
            f"{ACCOUNT}/adclients/ca-1",
            f"{ACCOUNT}/adclients/ca-2",
        ]

    async def test_get_ad_code_builds_resource_name(self, service, resource):
        get_adcode = _accounts(resource).adclients.return_value.adunits.return_value.getAdcode
        get_adcode.return_value.execute.return_value = {"adCode": "<ins></ins>"}

        assert await service.get_ad_code("ca-pub-1111", "42", ACCOUNT) == "<ins></ins>"
        get_adcode.assert_called_once_with(name=f"{ACCOUNT}/adclients/ca-pub-1111/adunits/42")


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

class TestReports:
    async def test_generate_report_params_and_cache(self, service, resource):
        generate = _accounts(resource).reports.return_value.generate
        generate.return_value.execute.return_value = EARNINGS_REPORT
        query = ReportQuery(
            account_id="pub-1111",
            start_date="2024-01-01",
            end_date="2024-01-31",
            dimensions=["DATE"],
            order_by="-ESTIMATED_EARNINGS",
            limit=10,
        )

        assert await service.generate_report(query) == EARNINGS_REPORT
        assert await service.generate_report(query) == EARNINGS_REPORT

        generate.assert_called_once()
        kwargs = generate.call_args.kwargs
        assert kwargs["account"] == ACCOUNT
        assert (kwargs["startDate_year"], kwargs["startDate_month"], kwargs["startDate_day"]) == (2024, 1, 1)
        assert kwargs["endDate_day"] == 31
        assert kwargs["orderBy"] == "ESTIMATED_EARNINGS DESC"
        assert kwargs["limit"] == 10

    async def test_csv_report_decodes_body(self, service, resource):
        generate_csv = _accounts(resource).reports.return_value.generateCsv
        generate_csv.return_value.execute.return_value = {
            "contentType": "text/csv",
            "data": "REFURSxDTElDS1MKMjAyNC0wMS0wMSwz",  # "DATE,CLICKS\n2024-01-01,3"
        }
        query = ReportQuery(account_id=ACCOUNT, start_date="2024-01-01", end_date="2024-01-01")

        assert await service.generate_csv_report(query) == "DATE,CLICKS\n2024-01-01,3"
        assert "orderBy" not in generate_csv.call_args.kwargs

    async def test_earnings_summary(self, service, resource):
        generate = _accounts(resource).reports.return_value.generate
        generate.return_value.execute.return_value = EARNINGS_REPORT

        with patch("adsense_mcp.services.reports.today_local", return_value=date(2024, 6, 15)):
            summary = await service.get_earnings_summary(ACCOUNT)

        for period in ("today", "yesterday", "last_7_days", "this_month", "last_month"):
            values = getattr(summary, period)
            assert values.earnings == pytest.approx(12.34)
            assert values.impressions == 1000
            assert values.clicks == 25
            assert values.page_views == 800
            assert values.ctr == pytest.approx(0.03125)
            assert values.rpm == pytest.approx(15.42)

        starts = {
            (c.kwargs["startDate_month"], c.kwargs["startDate_day"]) for c in generate.call_args_list
        }
        assert {(6, 15), (6, 14), (6, 9), (6, 1), (5, 1)} <= starts

    async def test_earnings_summary_defaults_to_zero(self, service, resource):
        _accounts(resource).reports.return_value.generate.return_value.execute.return_value = {}

        summary = await service.get_earnings_summary(ACCOUNT)

        assert summary.today.earnings == 0
        assert summary.last_month.page_views == 0
        assert summary.to_dict()["yesterday"]["ctr"] == 0
