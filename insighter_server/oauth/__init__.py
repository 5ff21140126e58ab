"""Google OAuth connect/exchange flow."""

from insighter_server.oauth.connectors import (
    CONNECTION_SCOPES,
    GoogleOAuthConnector,
    OAuthTokens,
    TokenExchangeError,
    UnsupportedConnectionTypeError,
    get_connector,
    get_connector_factory,
)
from insighter_server.oauth.flow import OAuthStage, exchange, initiate
from insighter_server.oauth.state import (
    InvalidStateError,
    OAuthState,
    StateExpiredError,
    decode_state,
    encode_state,
)

__all__ = [
    "CONNECTION_SCOPES",
    "GoogleOAuthConnector",
    "OAuthTokens",
    "TokenExchangeError",
    "UnsupportedConnectionTypeError",
    "get_connector",
    "get_connector_factory",
    "OAuthStage",
    "exchange",
    "initiate",
    "InvalidStateError",
    "OAuthState",
    "StateExpiredError",
    "decode_state",
    "encode_state",
]
