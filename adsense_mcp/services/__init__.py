"""Services module exports."""

from adsense_mcp.services.adsense import AdSenseService, normalize_account_id
from adsense_mcp.services.auth import (
    AuthorizedUserProvider,
    ServiceAccountProvider,
    build_adsense_resource,
    build_http_factory,
    default_providers,
    load_credentials,
)
from adsense_mcp.services.cache import CacheStats, ResponseCache, select_report_ttl
from adsense_mcp.services.rate_limit import RequestThrottle
from adsense_mcp.services.retry import BackoffExecutor, is_retryable

__all__ = [
    # Facade
    "AdSenseService",
    "normalize_account_id",
    # Auth
    "AuthorizedUserProvider",
    "ServiceAccountProvider",
    "build_adsense_resource",
    "build_http_factory",
    "default_providers",
    "load_credentials",
    # Cache
    "CacheStats",
    "ResponseCache",
    "select_report_ttl",
    # Rate Limiting
    "RequestThrottle",
    # Retry
    "BackoffExecutor",
    "is_retryable",
]
