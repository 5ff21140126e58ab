"""Workspace file API endpoints.

Files are stored by the upload client; these endpoints register and
manage their metadata and manual summaries.
"""

import json
import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import and_, select, update

from insighter_server.api.deps import NotFoundError
from insighter_server.auth import TokenPayload, get_current_user
from insighter_server.database import (
    FileSummary,
    FileUpload,
    WorkspaceDataSource,
    get_db_session,
)
from insighter_server.services.access import check_workspace_access
from insighter_server.services.data_sources import try_register_data_source

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces/{workspace_id}/files", tags=["files"])


class FileCreate(BaseModel):
    original_name: str = Field(..., min_length=1, max_length=512)
    file_type: str | None = Field(None, max_length=128)
    file_size: int = Field(0, ge=0)
    storage_path: str | None = Field(None, max_length=1024)


class FileResponse(BaseModel):
    file_id: str
    workspace_id: str
    original_name: str
    file_type: str | None
    file_size: int
    storage_path: str | None
    upload_status: str
    uploaded_by: str | None
    created_at: datetime


class FileCreateResponse(FileResponse):
    data_source_id: str | None = None


class SummaryUpsert(BaseModel):
    summary: str = Field(..., min_length=1)
    key_points: list[str] = Field(default_factory=list)


class SummaryResponse(BaseModel):
    summary_id: str
    file_id: str
    summary: str
    key_points: list[str]
    created_at: datetime
    updated_at: datetime


def _file_response(file: FileUpload) -> FileResponse:
    return FileResponse(
        file_id=file.file_id,
        workspace_id=file.workspace_id,
        original_name=file.original_name,
        file_type=file.file_type,
        file_size=file.file_size or 0,
        storage_path=file.storage_path,
        upload_status=file.upload_status,
        uploaded_by=file.uploaded_by,
        created_at=file.created_at,
    )


def _summary_response(summary: FileSummary) -> SummaryResponse:
    return SummaryResponse(
        summary_id=summary.summary_id,
        file_id=summary.file_id,
        summary=summary.summary,
        key_points=json.loads(summary.key_points) if summary.key_points else [],
        created_at=summary.created_at,
        updated_at=summary.updated_at,
    )


async def _get_file(db, workspace_id: str, file_id: str) -> FileUpload:
    result = await db.execute(
        select(FileUpload).where(
            and_(
                FileUpload.file_id == file_id,
                FileUpload.workspace_id == workspace_id,
            )
        )
    )
    file = result.scalar_one_or_none()
    if file is None:
        raise NotFoundError("file", file_id)
    return file


@router.get("", response_model=list[FileResponse])
async def list_files(
    workspace_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> list[FileResponse]:
    """List files in a workspace, newest first."""
    async with get_db_session() as db:
        await check_workspace_access(db, workspace_id, current_user.user_id)
        result = await db.execute(
            select(FileUpload)
            .where(FileUpload.workspace_id == workspace_id)
            .order_by(FileUpload.created_at.desc())
        )
        return [_file_response(f) for f in result.scalars().all()]


@router.post("", response_model=FileCreateResponse, status_code=status.HTTP_201_CREATED)
async def register_file(
    workspace_id: str,
    body: FileCreate,
    current_user: TokenPayload = Depends(get_current_user),
) -> FileCreateResponse:
    """Register an uploaded file and expose it as a workspace data source."""
    now = datetime.now(timezone.utc)

    async with get_db_session() as db:
        await check_workspace_access(db, workspace_id, current_user.user_id)

        file = FileUpload(
            file_id=str(uuid.uuid4()),
            workspace_id=workspace_id,
            original_name=body.original_name,
            file_type=body.file_type,
            file_size=body.file_size,
            storage_path=body.storage_path,
            upload_status="completed",
            uploaded_by=current_user.user_id,
            created_at=now,
            updated_at=now,
        )
        db.add(file)
        await db.commit()
        logger.info(f"Registered file {file.file_id} in workspace {workspace_id}")

        response = FileCreateResponse(**_file_response(file).model_dump())
        data_source = await try_register_data_source(
            db,
            workspace_id=workspace_id,
            source_type="file",
            source_id=response.file_id,
            source_name=response.original_name,
        )
        response.data_source_id = data_source.data_source_id if data_source else None
        return response


@router.get("/{file_id}", response_model=FileResponse)
async def get_file(
    workspace_id: str,
    file_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> FileResponse:
    async with get_db_session() as db:
        await check_workspace_access(db, workspace_id, current_user.user_id)
        return _file_response(await _get_file(db, workspace_id, file_id))


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    workspace_id: str,
    file_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> None:
    """Delete a file record and deactivate its data source."""
    async with get_db_session() as db:
        await check_workspace_access(db, workspace_id, current_user.user_id)
        file = await _get_file(db, workspace_id, file_id)

        await db.execute(
            update(WorkspaceDataSource)
            .where(
                and_(
                    WorkspaceDataSource.workspace_id == workspace_id,
                    WorkspaceDataSource.source_id == file_id,
                )
            )
            .values(is_active=False)
        )
        await db.delete(file)
        await db.commit()

        logger.info(f"Deleted file {file_id} from workspace {workspace_id}")


@router.get("/{file_id}/summary", response_model=SummaryResponse)
async def get_file_summary(
    workspace_id: str,
    file_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> SummaryResponse:
    async with get_db_session() as db:
        await check_workspace_access(db, workspace_id, current_user.user_id)
        await _get_file(db, workspace_id, file_id)

        result = await db.execute(select(FileSummary).where(FileSummary.file_id == file_id))
        summary = result.scalar_one_or_none()
        if summary is None:
            raise NotFoundError("summary", file_id)
        return _summary_response(summary)


@router.put("/{file_id}/summary", response_model=SummaryResponse)
async def put_file_summary(
    workspace_id: str,
    file_id: str,
    body: SummaryUpsert,
    current_user: TokenPayload = Depends(get_current_user),
) -> SummaryResponse:
    """Create or replace the manual summary of a file."""
    now = datetime.now(timezone.utc)

    async with get_db_session() as db:
        await check_workspace_access(db, workspace_id, current_user.user_id)
        await _get_file(db, workspace_id, file_id)

        result = await db.execute(select(FileSummary).where(FileSummary.file_id == file_id))
        summary = result.scalar_one_or_none()
        if summary is None:
            summary = FileSummary(
                summary_id=str(uuid.uuid4()),
                file_id=file_id,
                created_at=now,
            )
            db.add(summary)

        summary.summary = body.summary
        summary.key_points = json.dumps(body.key_points)
        summary.updated_at = now
        await db.commit()

        logger.info(f"Saved summary for file {file_id}")
        return _summary_response(summary)
