"""JWT session token management."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from pydantic import BaseModel

from insighter_server.config import get_settings

logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """JWT token payload."""

    user_id: str
    email: str
    exp: datetime
    iat: datetime
    sub: str = "access"


class TokenResponse(BaseModel):
    """Token response model."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: dict[str, Any]


def create_access_token(
    user_id: str,
    email: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create JWT access token.

    Args:
        user_id: User ID
        email: User email
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(hours=settings.jwt_expiration_hours)

    payload = {
        "user_id": user_id,
        "email": email,
        "exp": expire,
        "iat": now,
        "sub": "access",
    }

    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenPayload | None:
    """Decode and validate JWT access token.

    Args:
        token: JWT token string

    Returns:
        TokenPayload if valid, None otherwise
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        return TokenPayload(**payload)
    except jwt.ExpiredSignatureError:
        logger.warning("Token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token: {e}")
        return None
    except ValueError as e:
        logger.warning(f"Malformed token payload: {e}")
        return None


def get_token_expiration_seconds() -> int:
    """Get token expiration time in seconds."""
    return get_settings().jwt_expiration_hours * 3600
