"""Google OAuth connect endpoints.

``GET /oauth/google`` issues the consent URL, ``POST /oauth/google``
exchanges a code from a JSON client and ``GET /oauth/google/callback`` is
the browser redirect target, answering with a page that reports the
outcome to the opener window.
"""

import json
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from insighter_server.api.deps import InsighterException
from insighter_server.auth import TokenPayload, get_current_user, get_browser_user
from insighter_server.database import get_db_session
from insighter_server.oauth import flow
from insighter_server.oauth.connectors import ConnectorFactory, get_connector_factory
from insighter_server.oauth.state import decode_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth", tags=["oauth"])


class AuthUrlResponse(BaseModel):
    success: bool = True
    auth_url: str
    state: str
    stage: str


class ExchangeRequest(BaseModel):
    code: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)


class ConnectionSummary(BaseModel):
    connection_id: str
    workspace_id: str
    name: str
    type: str
    content_type: str
    connection_status: str
    created_at: datetime


class ExchangeResponse(BaseModel):
    success: bool = True
    connection: ConnectionSummary
    data_source_id: str | None
    stage: str


def _exchange_response(result: flow.ExchangeResult) -> ExchangeResponse:
    return ExchangeResponse(
        connection=ConnectionSummary(
            connection_id=result.connection_id,
            workspace_id=result.workspace_id,
            name=result.name,
            type=result.connection_type,
            content_type=result.content_type,
            connection_status=result.connection_status,
            created_at=result.created_at,
        ),
        data_source_id=result.data_source_id,
        stage=result.stage.value,
    )


_CALLBACK_PAGE = """<!DOCTYPE html>
<html>
<head><title>Google connection</title></head>
<body>
<p>{text}</p>
<script>
  var message = {message};
  if (window.opener) {{
    window.opener.postMessage(message, window.location.origin);
    window.close();
  }} else {{
    window.location.href = {fallback};
  }}
</script>
</body>
</html>
"""


def _script_json(value) -> str:
    return json.dumps(value).replace("<", "\\u003c").replace(">", "\\u003e")


def callback_page(message: dict, fallback_url: str, status_code: int) -> HTMLResponse:
    """Render the popup page that posts ``message`` to ``window.opener``."""
    text = "Connected. You can close this window." if message["type"] == "OAUTH_SUCCESS" else "Connection failed."
    content = _CALLBACK_PAGE.format(
        text=text,
        message=_script_json(message),
        fallback=_script_json(fallback_url),
    )
    return HTMLResponse(content=content, status_code=status_code)


def _fallback_url(encoded_state: str | None) -> str:
    if encoded_state:
        try:
            return f"/workspace/{decode_state(encoded_state).workspace_id}"
        except InsighterException:
            pass
    return "/"


@router.get("/google", response_model=AuthUrlResponse)
async def start_google_oauth(
    workspace_id: str = Query(..., min_length=1),
    connection_type: str = Query(..., min_length=1),
    document_id: str | None = Query(None),
    current_user: TokenPayload = Depends(get_current_user),
    resolve_connector: ConnectorFactory = Depends(get_connector_factory),
) -> AuthUrlResponse:
    """Build the Google consent URL for a workspace connection."""
    async with get_db_session() as db:
        redirect = await flow.initiate(
            db,
            user_id=current_user.user_id,
            workspace_id=workspace_id,
            connection_type=connection_type,
            resolve_connector=resolve_connector,
            document_id=document_id,
        )
    return AuthUrlResponse(auth_url=redirect.auth_url, state=redirect.state, stage=redirect.stage.value)


@router.post("/google", response_model=ExchangeResponse)
async def exchange_google_code(
    body: ExchangeRequest,
    current_user: TokenPayload = Depends(get_current_user),
    resolve_connector: ConnectorFactory = Depends(get_connector_factory),
) -> ExchangeResponse:
    """Exchange an authorization code and persist the connection."""
    async with get_db_session() as db:
        result = await flow.exchange(
            db,
            user_id=current_user.user_id,
            code=body.code,
            encoded_state=body.state,
            resolve_connector=resolve_connector,
        )
    return _exchange_response(result)


@router.get("/google/callback", response_class=HTMLResponse)
async def google_oauth_callback(
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    current_user: TokenPayload | None = Depends(get_browser_user),
    resolve_connector: ConnectorFactory = Depends(get_connector_factory),
) -> HTMLResponse:
    """Browser redirect target of the consent screen."""
    fallback = _fallback_url(state)

    if error:
        logger.warning(f"Google OAuth returned error: {error}")
        return callback_page({"type": "OAUTH_ERROR", "error": error}, fallback, 400)
    if current_user is None:
        return callback_page({"type": "OAUTH_ERROR", "error": "Unauthorized"}, fallback, 401)
    if not code or not state:
        return callback_page(
            {"type": "OAUTH_ERROR", "error": "Missing authorization code or state"}, fallback, 400
        )

    try:
        async with get_db_session() as db:
            result = await flow.exchange(
                db,
                user_id=current_user.user_id,
                code=code,
                encoded_state=state,
                resolve_connector=resolve_connector,
            )
    except InsighterException as e:
        logger.warning(f"Google OAuth callback failed: {e.error_code}")
        return callback_page(
            {"type": "OAUTH_ERROR", "error": e.message, "error_code": e.error_code},
            fallback,
            e.status_code,
        )

    message = {"type": "OAUTH_SUCCESS", **_exchange_response(result).model_dump(mode="json")}
    return callback_page(message, f"/workspace/{result.workspace_id}", 200)
