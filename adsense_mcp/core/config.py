"""Application configuration using pydantic-settings.

Provides type-safe, validated configuration from environment variables
with sensible defaults for a local MCP server install.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

SUPPORTED_DATABASE_BACKENDS = ("sqlite", "postgresql")


def _default_config_dir() -> Path:
    return Path.home() / ".config" / "adsense-mcp"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========== AdSense ==========
    adsense_account_id: str = Field(
        default="",
        description="Default account (pub-XXXX or accounts/pub-XXXX)",
    )
    auth_type: Literal["oauth", "service-account"] = "oauth"

    # ========== Local storage ==========
    config_dir: Path = Field(default_factory=_default_config_dir)
    service_account_path: str = Field(default="", description="Service account key file")
    tokens_path: str = Field(default="", description="Stored OAuth tokens file")
    database_url: str = Field(
        default="",
        description="Async SQLAlchemy URL for the response cache, SQLite or PostgreSQL (defaults to SQLite in config_dir)",
    )
    db_echo: bool = Field(default=False, description="Echo SQL queries")

    # ========== Rate Limiting ==========
    rate_limit_requests_per_minute: int = Field(default=100, ge=1)
    rate_limit_window_ms: int = Field(default=60_000, ge=1000)
    rate_limit_buffer_ms: int = Field(default=100, ge=0)

    # ========== Retry ==========
    retry_max_attempts: int = Field(default=5, ge=1, le=10)
    retry_base_delay_ms: int = Field(default=1000, ge=0)
    retry_max_delay_ms: int = Field(default=32_000, ge=0)
    retry_jitter_ms: int = Field(default=1000, ge=0)

    # ========== Cache maintenance ==========
    cache_sweep_interval_seconds: int = Field(default=3600, ge=0)
    tool_timeout_seconds: float = Field(default=120.0, gt=0)

    # ========== Application ==========
    app_name: str = "adsense-mcp-server"
    app_version: str = "0.1.0"
    debug: bool = Field(default=False)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # ========== Validators ==========
    @field_validator("database_url")
    @classmethod
    def check_database_backend(cls, value: str) -> str:
        """The cache upsert needs ON CONFLICT support."""
        if not value:
            return value
        try:
            backend = make_url(value).get_backend_name()
        except ArgumentError as e:
            raise ValueError(f"database_url is not a valid SQLAlchemy URL: {e}") from e
        if backend not in SUPPORTED_DATABASE_BACKENDS:
            supported = ", ".join(SUPPORTED_DATABASE_BACKENDS)
            raise ValueError(f"database_url must use one of: {supported}")
        return value

    # ========== Computed Properties ==========
    @computed_field
    @property
    def resolved_database_url(self) -> str:
        """Cache database URL, falling back to a SQLite file in config_dir."""
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{self.config_dir / 'cache.db'}"

    @computed_field
    @property
    def resolved_service_account_path(self) -> Path:
        if self.service_account_path:
            return Path(self.service_account_path).expanduser()
        return self.config_dir / "service-account.json"

    @computed_field
    @property
    def resolved_tokens_path(self) -> Path:
        if self.tokens_path:
            return Path(self.tokens_path).expanduser()
        return self.config_dir / "tokens.json"

    @computed_field
    @property
    def client_config_path(self) -> Path:
        """config.json holding the OAuth clientId / clientSecret."""
        return self.config_dir / "config.json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
