"""Workspace data-source listing."""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import and_, select

from insighter_server.auth import TokenPayload, get_current_user
from insighter_server.database import WorkspaceDataSource, get_db_session
from insighter_server.services.access import check_workspace_access

router = APIRouter(tags=["data-sources"])


class DataSourceResponse(BaseModel):
    data_source_id: str
    workspace_id: str
    source_type: str
    source_id: str
    source_name: str | None
    is_active: bool
    last_accessed_at: datetime | None
    created_at: datetime


@router.get("/workspaces/{workspace_id}/data-sources", response_model=list[DataSourceResponse])
async def list_data_sources(
    workspace_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> list[DataSourceResponse]:
    """List the active data sources of a workspace."""
    async with get_db_session() as db:
        await check_workspace_access(db, workspace_id, current_user.user_id)

        result = await db.execute(
            select(WorkspaceDataSource)
            .where(
                and_(
                    WorkspaceDataSource.workspace_id == workspace_id,
                    WorkspaceDataSource.is_active == True,  # noqa: E712
                )
            )
            .order_by(WorkspaceDataSource.created_at.desc())
        )
        return [
            DataSourceResponse(
                data_source_id=ds.data_source_id,
                workspace_id=ds.workspace_id,
                source_type=ds.source_type,
                source_id=ds.source_id,
                source_name=ds.source_name,
                is_active=ds.is_active,
                last_accessed_at=ds.last_accessed_at,
                created_at=ds.created_at,
            )
            for ds in result.scalars().all()
        ]
