"""Workspace data-source registry."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from insighter_server.database.models import WorkspaceDataSource

logger = logging.getLogger(__name__)


async def register_data_source(
    db: AsyncSession,
    workspace_id: str,
    source_type: str,
    source_id: str,
    source_name: str,
) -> WorkspaceDataSource:
    """Insert and commit a ``workspace_data_sources`` row."""
    now = datetime.now(timezone.utc)
    data_source = WorkspaceDataSource(
        data_source_id=str(uuid.uuid4()),
        workspace_id=workspace_id,
        source_type=source_type,
        source_id=source_id,
        source_name=source_name,
        is_active=True,
        last_accessed_at=now,
        created_at=now,
    )
    db.add(data_source)
    await db.commit()
    return data_source


async def try_register_data_source(
    db: AsyncSession,
    workspace_id: str,
    source_type: str,
    source_id: str,
    source_name: str,
) -> WorkspaceDataSource | None:
    """Register a data source, logging and swallowing database failures.

    The caller's earlier writes must already be committed; only this insert
    is rolled back on failure.
    """
    try:
        data_source = await register_data_source(db, workspace_id, source_type, source_id, source_name)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error adding {source_type} {source_id} to workspace_data_sources: {e}")
        return None

    logger.info(f"Registered {source_type} data source {source_id} in workspace {workspace_id}")
    return data_source
