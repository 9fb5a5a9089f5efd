"""Database module exports."""

from adsense_mcp.db.models import AccountCacheEntry, Base, QueryHistory, ReportCacheEntry
from adsense_mcp.db.session import (
    check_db_health,
    close_db,
    create_engine,
    create_session_factory,
    init_db,
)

__all__ = [
    # Models
    "Base",
    "ReportCacheEntry",
    "AccountCacheEntry",
    "QueryHistory",
    # Session management
    "create_engine",
    "create_session_factory",
    "init_db",
    "close_db",
    "check_db_health",
]
