"""OAuth ``state`` parameter codec.

The state is the standard base64 encoding of a JSON object::

    {"workspaceId": ..., "connectionType": ..., "userId": ...,
     "timestamp": <epoch ms>, "documentId": ...}

It is not signed. Tampering is caught only because the exchange step
re-validates the caller and their membership.
"""

import base64
import binascii
import json
import time

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from insighter_server.api.deps import BadRequestError

STATE_MAX_AGE_MS = 5 * 60 * 1000


class InvalidStateError(BadRequestError):
    """State could not be decoded or does not match the caller."""

    def __init__(self, message: str = "Invalid OAuth state"):
        super().__init__(message, error_code="INVALID_OAUTH_STATE")


class StateExpiredError(BadRequestError):
    """State is older than the freshness window."""

    def __init__(self, message: str = "OAuth state expired"):
        super().__init__(message, error_code="OAUTH_STATE_EXPIRED")


class OAuthState(BaseModel):
    """Context round-tripped through the identity provider."""

    model_config = ConfigDict(populate_by_name=True)

    workspace_id: str = Field(..., alias="workspaceId")
    connection_type: str = Field(..., alias="connectionType")
    user_id: str = Field(..., alias="userId")
    timestamp: int = Field(..., description="Creation time in epoch milliseconds")
    document_id: str | None = Field(None, alias="documentId")


def now_ms() -> int:
    return int(time.time() * 1000)


def create_state(
    workspace_id: str,
    connection_type: str,
    user_id: str,
    document_id: str | None = None,
    timestamp: int | None = None,
) -> OAuthState:
    """Build a state stamped with the current time."""
    return OAuthState(
        workspace_id=workspace_id,
        connection_type=connection_type,
        user_id=user_id,
        timestamp=now_ms() if timestamp is None else timestamp,
        document_id=document_id,
    )


def encode_state(state: OAuthState) -> str:
    """Serialise a state to its base64 wire form."""
    payload = state.model_dump(by_alias=True, exclude_none=True)
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def decode_state(encoded: str) -> OAuthState:
    """Parse the base64 wire form.

    Raises:
        InvalidStateError: On any base64, JSON or shape error
    """
    try:
        raw = base64.b64decode(encoded, validate=True)
        payload = json.loads(raw.decode("utf-8"))
        if not isinstance(payload, dict):
            raise InvalidStateError()
        return OAuthState.model_validate(payload)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, ValidationError, ValueError) as e:
        raise InvalidStateError() from e


def verify_state(
    state: OAuthState,
    user_id: str,
    max_age_ms: int = STATE_MAX_AGE_MS,
    current_ms: int | None = None,
) -> None:
    """Check freshness first, then that the state belongs to the caller.

    Raises:
        StateExpiredError: If the state is older than ``max_age_ms``
        InvalidStateError: If the state was issued to another user
    """
    current_ms = now_ms() if current_ms is None else current_ms
    if current_ms - state.timestamp > max_age_ms:
        raise StateExpiredError()
    if state.user_id != user_id:
        raise InvalidStateError()
