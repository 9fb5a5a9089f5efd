"""Tests for adsense_mcp.core.config.Settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from adsense_mcp.core.config import Settings, get_settings


class TestDefaults:
    def test_limits_match_api_quota(self):
        s = Settings(_env_file=None)
        assert s.rate_limit_requests_per_minute == 100
        assert s.rate_limit_window_ms == 60_000
        assert s.retry_max_attempts == 5
        assert s.retry_max_delay_ms == 32_000

    def test_default_config_dir(self):
        assert Settings(_env_file=None).config_dir == Path.home() / ".config" / "adsense-mcp"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestResolvedPaths:
    def test_database_defaults_to_sqlite_in_config_dir(self, tmp_path: Path):
        s = Settings(config_dir=tmp_path, _env_file=None)
        assert s.resolved_database_url == f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}"

    def test_explicit_database_url_wins(self, tmp_path: Path):
        s = Settings(config_dir=tmp_path, database_url="sqlite+aiosqlite:///:memory:", _env_file=None)
        assert s.resolved_database_url == "sqlite+aiosqlite:///:memory:"

    def test_credential_files(self, tmp_path: Path):
        s = Settings(config_dir=tmp_path, _env_file=None)
        assert s.resolved_tokens_path == tmp_path / "tokens.json"
        assert s.resolved_service_account_path == tmp_path / "service-account.json"
        assert s.client_config_path == tmp_path / "config.json"

    def test_explicit_paths_expand_user(self, tmp_path: Path):
        s = Settings(config_dir=tmp_path, tokens_path="~/tokens.json", _env_file=None)
        assert s.resolved_tokens_path == Path.home() / "tokens.json"


class TestEnvironment:
    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.setenv("ADSENSE_ACCOUNT_ID", "pub-1111")
        monkeypatch.setenv("AUTH_TYPE", "service-account")
        monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
        s = Settings(_env_file=None)
        assert s.adsense_account_id == "pub-1111"
        assert s.auth_type == "service-account"
        assert s.config_dir == tmp_path

    @pytest.mark.parametrize(
        "field, value",
        [
            ("auth_type", "api-key"),
            ("rate_limit_requests_per_minute", 0),
            ("retry_max_attempts", 0),
            ("tool_timeout_seconds", 0),
            ("log_level", "VERBOSE"),
        ],
    )
    def test_rejects_invalid_values(self, field: str, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value}, _env_file=None)


class TestDatabaseBackend:
    @pytest.mark.parametrize(
        "url",
        ["sqlite+aiosqlite:///:memory:", "postgresql+asyncpg://u:p@localhost/adsense"],
    )
    def test_accepts_upsert_capable_backends(self, url: str):
        assert Settings(database_url=url, _env_file=None).resolved_database_url == url

    def test_rejects_backend_without_on_conflict(self):
        with pytest.raises(ValidationError, match="database_url must use one of: sqlite, postgresql"):
            Settings(database_url="mysql+aiomysql://u:p@localhost/adsense", _env_file=None)

    def test_rejects_malformed_url(self):
        with pytest.raises(ValidationError, match="not a valid SQLAlchemy URL"):
            Settings(database_url="not a database url", _env_file=None)
