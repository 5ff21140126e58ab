"""External (API / document / web) connection endpoints.

OAuth-backed connections are created by the OAuth flow; this router lists
them and registers connections configured by hand.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import and_, select

from insighter_server.auth import TokenPayload, get_current_user
from insighter_server.core.encryption import encrypt_object
from insighter_server.database import ExternalConnection, get_db_session
from insighter_server.services.access import check_workspace_access
from insighter_server.services.data_sources import try_register_data_source

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/external-connections", tags=["external-connections"])


class ExternalConnectionCreate(BaseModel):
    workspace_id: str = Field(..., min_length=1, max_length=64)
    connection_type: str = Field(..., min_length=1, max_length=64)
    connection_config: dict[str, Any] = Field(default_factory=dict)
    name: str | None = Field(None, max_length=256)
    url: str | None = Field(None, max_length=1024)
    content_type: str = Field("api", pattern="^(api|document|web)$")
    oauth_provider: str | None = Field(None, max_length=64)
    oauth_scopes: list[str] = Field(default_factory=list)
    sync_frequency: str = Field("manual", max_length=32)


class ExternalConnectionResponse(BaseModel):
    connection_id: str
    workspace_id: str
    name: str
    type: str
    url: str | None
    content_type: str
    oauth_provider: str | None
    oauth_scopes: list[str]
    sync_frequency: str | None
    connection_status: str
    last_sync: datetime | None
    created_at: datetime


class ExternalConnectionCreateResponse(ExternalConnectionResponse):
    data_source_id: str | None = None


def _connection_response(connection: ExternalConnection) -> ExternalConnectionResponse:
    return ExternalConnectionResponse(
        connection_id=connection.connection_id,
        workspace_id=connection.workspace_id,
        name=connection.name,
        type=connection.type,
        url=connection.url,
        content_type=connection.content_type,
        oauth_provider=connection.oauth_provider,
        oauth_scopes=json.loads(connection.oauth_scopes) if connection.oauth_scopes else [],
        sync_frequency=connection.sync_frequency,
        connection_status=connection.connection_status,
        last_sync=connection.last_sync,
        created_at=connection.created_at,
    )


@router.get("", response_model=list[ExternalConnectionResponse])
async def list_external_connections(
    workspace_id: str = Query(..., min_length=1),
    current_user: TokenPayload = Depends(get_current_user),
) -> list[ExternalConnectionResponse]:
    """List the active connections of a workspace. Secrets are never returned."""
    async with get_db_session() as db:
        await check_workspace_access(db, workspace_id, current_user.user_id)

        result = await db.execute(
            select(ExternalConnection)
            .where(
                and_(
                    ExternalConnection.workspace_id == workspace_id,
                    ExternalConnection.is_active == True,  # noqa: E712
                )
            )
            .order_by(ExternalConnection.created_at.desc())
        )
        return [_connection_response(c) for c in result.scalars().all()]


@router.post("", response_model=ExternalConnectionCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_external_connection(
    body: ExternalConnectionCreate,
    current_user: TokenPayload = Depends(get_current_user),
) -> ExternalConnectionCreateResponse:
    """Store a connection with its config encrypted and register it as a data source."""
    now = datetime.now(timezone.utc)
    name = body.name or f"{body.connection_type} Connection"

    async with get_db_session() as db:
        await check_workspace_access(db, body.workspace_id, current_user.user_id)

        connection = ExternalConnection(
            connection_id=str(uuid.uuid4()),
            workspace_id=body.workspace_id,
            name=name,
            type=body.connection_type,
            url=body.url or "",
            content_type=body.content_type,
            config_encrypted=encrypt_object(body.connection_config),
            oauth_provider=body.oauth_provider,
            oauth_scopes=json.dumps(body.oauth_scopes),
            sync_frequency=body.sync_frequency,
            connection_status="active",
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        db.add(connection)
        await db.commit()
        logger.info(f"Created {body.connection_type} connection {connection.connection_id}")

        response = ExternalConnectionCreateResponse(**_connection_response(connection).model_dump())
        data_source = await try_register_data_source(
            db,
            workspace_id=body.workspace_id,
            source_type=body.content_type,
            source_id=response.connection_id,
            source_name=name,
        )
        response.data_source_id = data_source.data_source_id if data_source else None
        return response
