"""Authentication module."""

from insighter_server.auth.jwt import (
    create_access_token,
    decode_access_token,
    get_token_expiration_seconds,
    TokenPayload,
    TokenResponse,
)
from insighter_server.auth.password import hash_password, verify_password
from insighter_server.auth.middleware import get_current_user, get_browser_user

__all__ = [
    # JWT
    "create_access_token",
    "decode_access_token",
    "get_token_expiration_seconds",
    "TokenPayload",
    "TokenResponse",
    # Password
    "hash_password",
    "verify_password",
    # Dependencies
    "get_current_user",
    "get_browser_user",
]
