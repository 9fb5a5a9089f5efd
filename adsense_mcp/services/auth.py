"""Credential loading for the AdSense Management API.

Credentials are read from token and key files kept in the
config directory. Each provider returns credentials or None; the first
provider that yields something wins.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import httplib2
import orjson
from google.auth.credentials import Credentials
from google.oauth2 import credentials as oauth2_credentials
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient import discovery

from adsense_mcp.core.config import Settings
from adsense_mcp.core.exceptions import CredentialsNotFoundError
from adsense_mcp.core.logging import get_logger

logger = get_logger(__name__)

ADSENSE_READONLY_SCOPES = ["https://www.googleapis.com/auth/adsense.readonly"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


class CredentialProvider(Protocol):
    name: str

    def load(self) -> Credentials | None: ...


def _read_json(path: Path) -> dict[str, Any] | None:
    if not path.is_file():
        return None
    try:
        data = orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as e:
        logger.warning("Ignoring unreadable credential file", path=str(path), error=str(e))
        return None
    return data if isinstance(data, dict) else None


class ServiceAccountProvider:
    """Service account key file (JSON) with read-only AdSense scope."""

    name = "service-account"

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> Credentials | None:
        info = _read_json(self.path)
        if info is None:
            return None
        logger.debug("Using service account credentials", path=str(self.path))
        return service_account.Credentials.from_service_account_info(
            info, scopes=ADSENSE_READONLY_SCOPES
        )


class AuthorizedUserProvider:
    """Stored OAuth tokens.

    Accepts google-auth's authorized-user format, or the token file layout
    ``{"accessToken", "refreshToken", "expiryDate"}`` paired with the client
    id/secret from ``config.json``.
    """

    name = "oauth"

    def __init__(self, tokens_path: Path, client_config_path: Path | None = None):
        self.tokens_path = tokens_path
        self.client_config_path = client_config_path

    def load(self) -> Credentials | None:
        tokens = _read_json(self.tokens_path)
        if tokens is None:
            return None

        if "refresh_token" in tokens and "client_id" in tokens:
            logger.debug("Using authorized-user credentials", path=str(self.tokens_path))
            return oauth2_credentials.Credentials.from_authorized_user_info(
                tokens, scopes=ADSENSE_READONLY_SCOPES
            )

        access_token = tokens.get("accessToken")
        if not access_token:
            return None

        client: dict[str, Any] = {}
        if self.client_config_path is not None:
            client = _read_json(self.client_config_path) or {}

        expiry = None
        if tokens.get("expiryDate"):
            # google-auth compares against naive UTC datetimes
            expiry = datetime.fromtimestamp(tokens["expiryDate"] / 1000, tz=timezone.utc).replace(
                tzinfo=None
            )

        logger.debug("Using stored OAuth tokens", path=str(self.tokens_path))
        return oauth2_credentials.Credentials(
            token=access_token,
            refresh_token=tokens.get("refreshToken"),
            token_uri=TOKEN_URI,
            client_id=client.get("clientId"),
            client_secret=client.get("clientSecret"),
            scopes=ADSENSE_READONLY_SCOPES,
            expiry=expiry,
        )


def default_providers(settings: Settings) -> list[CredentialProvider]:
    """Provider chain ordered by the configured auth type."""
    service = ServiceAccountProvider(settings.resolved_service_account_path)
    oauth = AuthorizedUserProvider(settings.resolved_tokens_path, settings.client_config_path)
    if settings.auth_type == "service-account":
        return [service, oauth]
    return [oauth, service]


def load_credentials(providers: list[CredentialProvider]) -> Credentials:
    """Return credentials from the first provider that has them."""
    for provider in providers:
        creds = provider.load()
        if creds is not None:
            logger.info("Credentials loaded", provider=provider.name)
            return creds

    raise CredentialsNotFoundError([p.name for p in providers])


def build_adsense_resource(credentials: Credentials) -> Any:
    """Build the AdSense Management API v2 resource."""
    return discovery.build("adsense", "v2", credentials=credentials, cache_discovery=False)


def build_http_factory(credentials: Credentials) -> Callable[[], AuthorizedHttp]:
    """Per-request authorized transports.

    httplib2 connections are not thread-safe, and requests run in worker
    threads, so every execution gets its own ``Http``.
    """

    def factory() -> AuthorizedHttp:
        return AuthorizedHttp(credentials, http=httplib2.Http())

    return factory
