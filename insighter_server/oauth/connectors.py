"""Google-family OAuth connectors.

Each connection type maps to one connector exposing ``get_auth_url()`` and
``exchange_code_for_tokens()``. The token exchange is a single POST to the
Google token endpoint; there is no retry.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urlencode

import httpx

from insighter_server.api.deps import BadRequestError, InternalError
from insighter_server.config import ServerSettings, get_settings

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_SCOPE_PREFIX = "https://www.googleapis.com/auth/"

DEFAULT_EXPIRES_IN = 3600

CONNECTION_SCOPES: dict[str, list[str]] = {
    "google-sheets": [
        GOOGLE_SCOPE_PREFIX + "spreadsheets.readonly",
        GOOGLE_SCOPE_PREFIX + "drive.readonly",
    ],
    "google-docs": [
        GOOGLE_SCOPE_PREFIX + "documents.readonly",
        GOOGLE_SCOPE_PREFIX + "drive.readonly",
    ],
    "google-analytics": [
        GOOGLE_SCOPE_PREFIX + "analytics.readonly",
    ],
}


class UnsupportedConnectionTypeError(BadRequestError):
    """Connection type has no Google OAuth connector."""

    def __init__(self, connection_type: str):
        super().__init__(
            "Unsupported connection type for Google OAuth",
            error_code="UNSUPPORTED_CONNECTION_TYPE",
            details={"connection_type": connection_type},
        )


class TokenExchangeError(InternalError):
    """Provider rejected the code or could not be reached."""

    def __init__(self, message: str = "Failed to exchange authorization code"):
        super().__init__(message, error_code="TOKEN_EXCHANGE_FAILED")


@dataclass
class OAuthTokens:
    """Tokens returned by the provider."""

    access_token: str
    refresh_token: str | None
    expires_in: int
    token_type: str = "Bearer"


class GoogleOAuthConnector:
    """OAuth 2.0 authorization-code client for one Google connection type."""

    provider = "google"

    def __init__(
        self,
        connection_type: str,
        settings: ServerSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        if connection_type not in CONNECTION_SCOPES:
            raise UnsupportedConnectionTypeError(connection_type)
        self.connection_type = connection_type
        self.settings = settings or get_settings()
        self.transport = transport
        self.timeout = timeout

    @property
    def scopes(self) -> list[str]:
        return list(CONNECTION_SCOPES[self.connection_type])

    @property
    def content_type(self) -> str:
        return "document" if self.connection_type == "google-docs" else "api"

    def get_auth_url(self) -> str:
        """Build the consent-screen URL (without ``state``)."""
        params = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.settings.google_redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code_for_tokens(self, code: str) -> OAuthTokens:
        """Exchange an authorization code for tokens.

        Raises:
            TokenExchangeError: On transport errors, non-2xx responses or a
                response without an access token
        """
        data = {
            "code": code,
            "client_id": self.settings.google_client_id,
            "client_secret": self.settings.google_client_secret,
            "redirect_uri": self.settings.google_redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(GOOGLE_TOKEN_URL, data=data)
                response.raise_for_status()
                payload: dict[str, Any] = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Google token endpoint returned {e.response.status_code} for {self.connection_type}")
            raise TokenExchangeError() from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Google token exchange failed for {self.connection_type}: {e}")
            raise TokenExchangeError() from e

        access_token = payload.get("access_token")
        if not access_token:
            raise TokenExchangeError("Failed to get access token")

        return OAuthTokens(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or None,
            expires_in=int(payload.get("expires_in") or DEFAULT_EXPIRES_IN),
            token_type=payload.get("token_type", "Bearer"),
        )


ConnectorFactory = Callable[[str], GoogleOAuthConnector]


def get_connector(connection_type: str) -> GoogleOAuthConnector:
    """Resolve the connector for a connection type.

    Raises:
        UnsupportedConnectionTypeError: For non-Google connection types
    """
    return GoogleOAuthConnector(connection_type)


def get_connector_factory() -> ConnectorFactory:
    """FastAPI dependency returning the connector resolver."""
    return get_connector
