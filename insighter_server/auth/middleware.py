"""Authentication dependencies for FastAPI.

The REST API is bearer-only. The session cookie set at login is read
solely by ``get_browser_user``, which guards the OAuth callback page that
Google redirects the browser to.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from insighter_server.api.deps import UnauthorizedError
from insighter_server.auth.jwt import TokenPayload, decode_access_token
from insighter_server.config import get_settings

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for JWT
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> TokenPayload:
    """Get current user from the bearer token.

    Args:
        credentials: Bearer token credentials

    Returns:
        TokenPayload of the authenticated user

    Raises:
        UnauthorizedError: If token is missing, invalid or expired
    """
    if not credentials or not credentials.credentials:
        raise UnauthorizedError("Missing authentication token")

    token_payload = decode_access_token(credentials.credentials)
    if not token_payload:
        raise UnauthorizedError("Invalid or expired token")

    return token_payload


async def get_browser_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[TokenPayload]:
    """Resolve the user of a browser navigation without failing.

    The bearer header wins; otherwise the session cookie is used.

    Returns:
        TokenPayload if a valid token is present, None otherwise
    """
    if credentials and credentials.credentials:
        token = credentials.credentials
    else:
        token = request.cookies.get(get_settings().session_cookie_name)
    if not token:
        return None
    return decode_access_token(token)
