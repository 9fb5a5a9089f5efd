"""Core module exports."""

from adsense_mcp.core.config import Settings, get_settings
from adsense_mcp.core.exceptions import (
    AppException,
    CacheStorageError,
    CredentialsNotFoundError,
    NoAccountsFoundError,
    ValidationError,
)
from adsense_mcp.core.logging import get_logger, setup_logging

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Logging
    "get_logger",
    "setup_logging",
    # Exceptions
    "AppException",
    "CacheStorageError",
    "CredentialsNotFoundError",
    "NoAccountsFoundError",
    "ValidationError",
]
