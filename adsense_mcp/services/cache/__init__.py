"""Persistent response caching for AdSense API calls.

TTL strategy:
- Today's reports: 5 minutes (changes frequently)
- Yesterday's reports: 1 hour (may update for spam filtering)
- Historical reports (>2 days): 24 hours (stable data)
- Account list: 24 hours (rarely changes)
- Sites list: 1 hour (status can change)
- Alerts: 15 minutes (important to catch quickly)
- Policy issues: 30 minutes (critical monitoring)
- Payments: 6 hours (rarely changes)
- Ad units: 1 hour
"""

from adsense_mcp.services.cache.constants import (
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
    TTL_HISTORICAL,
    TTL_PAYMENTS,
    TTL_POLICY_ISSUES,
    TTL_SITES,
    TTL_TODAY,
    TTL_YESTERDAY,
)
from adsense_mcp.services.cache.service import CacheStats, ResponseCache, fingerprint, make_key
from adsense_mcp.services.cache.ttl import select_report_ttl

__all__ = [
    # TTL constants
    "TTL_TODAY",
    "TTL_YESTERDAY",
    "TTL_HISTORICAL",
    "TTL_ACCOUNTS",
    "TTL_SITES",
    "TTL_ALERTS",
    "TTL_POLICY_ISSUES",
    "TTL_PAYMENTS",
    "TTL_AD_UNITS",
    # Key prefix constants
    "KEY_PREFIX_ACCOUNTS",
    "KEY_PREFIX_SITES",
    "KEY_PREFIX_ALERTS",
    "KEY_PREFIX_POLICY_ISSUES",
    "KEY_PREFIX_PAYMENTS",
    "KEY_PREFIX_AD_UNITS",
    "KEY_PREFIX_REPORT",
    "KEY_PREFIX_REPORT_CSV",
    "GLOBAL_ACCOUNT_TAG",
    # Service
    "CacheStats",
    "ResponseCache",
    "fingerprint",
    "make_key",
    "select_report_ttl",
]
