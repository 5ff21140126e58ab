"""Google OAuth connect/exchange flow.

Stages::

    START -> AUTH_REDIRECT -> CODE_RECEIVED -> TOKEN_EXCHANGED
          -> CONNECTION_PERSISTED -> DATA_SOURCE_REGISTERED

Each step either advances or raises an ``InsighterException`` mapped to an
HTTP status. Nothing is retried and nothing is compensated: a duplicate
exchange with the same code performs a second token exchange and a second
insert, and a failed data-source registration leaves the connection and
tokens in place.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from urllib.parse import quote

from sqlalchemy.ext.asyncio import AsyncSession

from insighter_server.config import get_settings
from insighter_server.core.encryption import encrypt_object
from insighter_server.database.models import ExternalConnection, OAuthToken
from insighter_server.oauth.connectors import ConnectorFactory
from insighter_server.oauth.state import (
    create_state,
    decode_state,
    encode_state,
    verify_state,
)
from insighter_server.services import data_sources
from insighter_server.services.access import require_workspace_org_member

logger = logging.getLogger(__name__)


class OAuthStage(str, Enum):
    START = "START"
    AUTH_REDIRECT = "AUTH_REDIRECT"
    CODE_RECEIVED = "CODE_RECEIVED"
    TOKEN_EXCHANGED = "TOKEN_EXCHANGED"
    CONNECTION_PERSISTED = "CONNECTION_PERSISTED"
    DATA_SOURCE_REGISTERED = "DATA_SOURCE_REGISTERED"


@dataclass
class AuthRedirect:
    auth_url: str
    state: str
    stage: OAuthStage = OAuthStage.AUTH_REDIRECT


@dataclass
class ExchangeResult:
    connection_id: str
    workspace_id: str
    connection_type: str
    name: str
    content_type: str
    connection_status: str
    created_at: datetime
    data_source_id: str | None
    stage: OAuthStage


async def initiate(
    db: AsyncSession,
    user_id: str,
    workspace_id: str,
    connection_type: str,
    resolve_connector: ConnectorFactory,
    document_id: str | None = None,
) -> AuthRedirect:
    """Build the provider URL for a member of the workspace's organization."""
    await require_workspace_org_member(db, workspace_id, user_id)
    connector = resolve_connector(connection_type)

    state = encode_state(create_state(
        workspace_id=workspace_id,
        connection_type=connection_type,
        user_id=user_id,
        document_id=document_id,
    ))
    auth_url = connector.get_auth_url()
    # state is standard base64 and may contain "+", "/" and "="
    auth_url = f"{auth_url}&state={quote(state, safe='')}"

    logger.info(f"OAuth redirect issued for {connection_type} in workspace {workspace_id}")
    return AuthRedirect(auth_url=auth_url, state=state)


async def exchange(
    db: AsyncSession,
    user_id: str,
    code: str,
    encoded_state: str,
    resolve_connector: ConnectorFactory,
) -> ExchangeResult:
    """Validate the state, exchange the code and persist the connection."""
    settings = get_settings()

    state = decode_state(encoded_state)
    verify_state(state, user_id, max_age_ms=settings.oauth_state_max_age_seconds * 1000)
    # CODE_RECEIVED

    workspace = await require_workspace_org_member(db, state.workspace_id, user_id)
    workspace_id = workspace.workspace_id

    connector = resolve_connector(state.connection_type)
    tokens = await connector.exchange_code_for_tokens(code)
    # TOKEN_EXCHANGED

    now = datetime.now(timezone.utc)
    connection_type = state.connection_type
    name = f"{connection_type} Connection"
    scopes = json.dumps(connector.scopes)

    config: dict[str, str] = {}
    if state.document_id:
        config["documentId"] = state.document_id

    access_token_encrypted = encrypt_object({"token": tokens.access_token})
    refresh_token_encrypted = (
        encrypt_object({"token": tokens.refresh_token}) if tokens.refresh_token else None
    )
    config_encrypted = encrypt_object(config)

    connection_id = str(uuid.uuid4())
    db.add(ExternalConnection(
        connection_id=connection_id,
        workspace_id=workspace_id,
        name=name,
        type=connection_type,
        url="",
        content_type=connector.content_type,
        config_encrypted=config_encrypted,
        oauth_provider=connector.provider,
        oauth_scopes=scopes,
        connection_status="active",
        is_active=True,
        created_at=now,
        updated_at=now,
    ))
    db.add(OAuthToken(
        token_id=str(uuid.uuid4()),
        connection_id=connection_id,
        provider=connector.provider,
        access_token_encrypted=access_token_encrypted,
        refresh_token_encrypted=refresh_token_encrypted,
        token_type=tokens.token_type,
        expires_at=now + timedelta(seconds=tokens.expires_in),
        scope=scopes,
        created_at=now,
        updated_at=now,
    ))
    await db.commit()
    logger.info(f"OAuth connection {connection_id} persisted for workspace {workspace_id}")

    data_source = await data_sources.try_register_data_source(
        db,
        workspace_id=workspace_id,
        source_type=connector.content_type,
        source_id=connection_id,
        source_name=name,
    )
    data_source_id = data_source.data_source_id if data_source is not None else None

    return ExchangeResult(
        connection_id=connection_id,
        workspace_id=workspace_id,
        connection_type=connection_type,
        name=name,
        content_type=connector.content_type,
        connection_status="active",
        created_at=now,
        data_source_id=data_source_id,
        stage=(
            OAuthStage.DATA_SOURCE_REGISTERED if data_source_id else OAuthStage.CONNECTION_PERSISTED
        ),
    )
