"""Database connection endpoints.

Host, port, database and username are stored in clear; the password and
any extra options live in ``config_encrypted`` and never leave the server.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import and_, select, update

from insighter_server.api.deps import NotFoundError
from insighter_server.auth import TokenPayload, get_current_user
from insighter_server.core.encryption import encrypt_object
from insighter_server.database import DatabaseConnection, WorkspaceDataSource, get_db_session
from insighter_server.services.access import WORKSPACE_ADMIN_ROLES, check_workspace_access
from insighter_server.services.data_sources import try_register_data_source

logger = logging.getLogger(__name__)

router = APIRouter(tags=["database-connections"])


class DatabaseConnectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)
    db_type: str = Field(..., pattern="^(postgresql|mysql|sqlite|redshift)$")
    host: str | None = Field(None, max_length=256)
    port: int | None = Field(None, ge=1, le=65535)
    database_name: str | None = Field(None, max_length=256)
    username: str | None = Field(None, max_length=256)
    password: str | None = None
    ssl: bool = False
    options: dict[str, Any] = Field(default_factory=dict)


class DatabaseConnectionResponse(BaseModel):
    connection_id: str
    workspace_id: str
    name: str
    db_type: str
    host: str | None
    port: int | None
    database_name: str | None
    username: str | None
    connection_status: str
    created_by: str | None
    created_at: datetime


class DatabaseConnectionCreateResponse(DatabaseConnectionResponse):
    data_source_id: str | None = None


def _connection_response(connection: DatabaseConnection) -> DatabaseConnectionResponse:
    return DatabaseConnectionResponse(
        connection_id=connection.connection_id,
        workspace_id=connection.workspace_id,
        name=connection.name,
        db_type=connection.db_type,
        host=connection.host,
        port=connection.port,
        database_name=connection.database_name,
        username=connection.username,
        connection_status=connection.connection_status,
        created_by=connection.created_by,
        created_at=connection.created_at,
    )


async def _get_connection(db, connection_id: str) -> DatabaseConnection:
    result = await db.execute(
        select(DatabaseConnection).where(
            and_(
                DatabaseConnection.connection_id == connection_id,
                DatabaseConnection.is_active == True,  # noqa: E712
            )
        )
    )
    connection = result.scalar_one_or_none()
    if connection is None:
        raise NotFoundError("database connection", connection_id)
    return connection


@router.get(
    "/workspaces/{workspace_id}/database-connections",
    response_model=list[DatabaseConnectionResponse],
)
async def list_database_connections(
    workspace_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> list[DatabaseConnectionResponse]:
    async with get_db_session() as db:
        await check_workspace_access(db, workspace_id, current_user.user_id)

        result = await db.execute(
            select(DatabaseConnection)
            .where(
                and_(
                    DatabaseConnection.workspace_id == workspace_id,
                    DatabaseConnection.is_active == True,  # noqa: E712
                )
            )
            .order_by(DatabaseConnection.created_at.desc())
        )
        return [_connection_response(c) for c in result.scalars().all()]


@router.post(
    "/workspaces/{workspace_id}/database-connections",
    response_model=DatabaseConnectionCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_database_connection(
    workspace_id: str,
    body: DatabaseConnectionCreate,
    current_user: TokenPayload = Depends(get_current_user),
) -> DatabaseConnectionCreateResponse:
    """Store a database connection (workspace admins and organization owners)."""
    now = datetime.now(timezone.utc)

    async with get_db_session() as db:
        await check_workspace_access(
            db, workspace_id, current_user.user_id, roles=WORKSPACE_ADMIN_ROLES
        )

        secrets = {"password": body.password, "ssl": body.ssl, "options": body.options}
        connection = DatabaseConnection(
            connection_id=str(uuid.uuid4()),
            workspace_id=workspace_id,
            name=body.name,
            db_type=body.db_type,
            host=body.host,
            port=body.port,
            database_name=body.database_name,
            username=body.username,
            config_encrypted=encrypt_object(secrets),
            connection_status="pending",
            is_active=True,
            created_by=current_user.user_id,
            created_at=now,
            updated_at=now,
        )
        db.add(connection)
        await db.commit()
        logger.info(f"Created {body.db_type} connection {connection.connection_id} in workspace {workspace_id}")

        response = DatabaseConnectionCreateResponse(**_connection_response(connection).model_dump())
        data_source = await try_register_data_source(
            db,
            workspace_id=workspace_id,
            source_type="database",
            source_id=response.connection_id,
            source_name=response.name,
        )
        response.data_source_id = data_source.data_source_id if data_source else None
        return response


@router.get("/database-connections/{connection_id}", response_model=DatabaseConnectionResponse)
async def get_database_connection(
    connection_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> DatabaseConnectionResponse:
    async with get_db_session() as db:
        connection = await _get_connection(db, connection_id)
        await check_workspace_access(db, connection.workspace_id, current_user.user_id)
        return _connection_response(connection)


@router.delete("/database-connections/{connection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_database_connection(
    connection_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> None:
    """Deactivate a database connection and its data source."""
    async with get_db_session() as db:
        connection = await _get_connection(db, connection_id)
        await check_workspace_access(
            db, connection.workspace_id, current_user.user_id, roles=WORKSPACE_ADMIN_ROLES
        )

        connection.is_active = False
        connection.updated_at = datetime.now(timezone.utc)
        await db.execute(
            update(WorkspaceDataSource)
            .where(WorkspaceDataSource.source_id == connection_id)
            .values(is_active=False)
        )
        await db.commit()

        logger.info(f"Deleted database connection {connection_id}")
