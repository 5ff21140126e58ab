"""Workspace management API endpoints.

Provides CRUD operations for organization workspaces with multi-tenant
isolation. Access is granted through organization membership or a
workspace-specific membership.
"""

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import and_, select, update

from insighter_server.api.deps import BadRequestError, ConflictError, NotFoundError
from insighter_server.auth import TokenPayload, get_current_user
from insighter_server.core.rate_limit import WORKSPACE_CREATE_RATE_LIMIT, limiter
from insighter_server.database import (
    AIAgent,
    User,
    Workspace,
    WorkspaceMember,
    get_db_session,
)
from insighter_server.models import Name
from insighter_server.services.access import (
    WORKSPACE_ADMIN_ROLES,
    check_workspace_access,
    get_organization_membership,
    require_organization_member,
)
from insighter_server.services.members import get_user_by_email
from insighter_server.services.workspaces import (
    add_organization_members_to_workspace,
    create_workspace_agent,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


# =============================================================================
# Request/Response Models
# =============================================================================

class WorkspaceCreate(BaseModel):
    """Request model for creating a workspace."""

    organization_id: str = Field(..., min_length=1, max_length=64)
    name: Name = Field(..., description="Workspace name")
    description: str | None = Field(None, max_length=1024, description="Workspace description")


class WorkspaceUpdate(BaseModel):
    """Request model for updating a workspace."""

    name: Name | None = None
    description: str | None = Field(None, max_length=1024)


class WorkspaceResponse(BaseModel):
    """Response model for workspace data."""

    workspace_id: str
    organization_id: str
    name: str
    description: str | None
    status: str
    user_role: str
    created_at: datetime
    updated_at: datetime


class WorkspaceCreateResponse(WorkspaceResponse):
    agent_id: str | None = None
    members_added: int = 0


class WorkspaceMemberResponse(BaseModel):
    user_id: str
    email: str
    name: str
    role: str
    status: str
    created_at: datetime


class WorkspaceMemberAdd(BaseModel):
    """Request model for adding a workspace-only member."""

    email: EmailStr
    role: str = Field("member", pattern="^(admin|member|viewer)$")


class WorkspaceMemberRoleUpdate(BaseModel):
    role: str = Field(..., pattern="^(admin|member|viewer)$")


def _workspace_member_response(member: WorkspaceMember, user: User) -> WorkspaceMemberResponse:
    return WorkspaceMemberResponse(
        user_id=user.user_id,
        email=user.email,
        name=user.name,
        role=member.role,
        status=member.status,
        created_at=member.created_at,
    )


async def _find_workspace_member(db, workspace_id: str, user_id: str) -> WorkspaceMember | None:
    result = await db.execute(
        select(WorkspaceMember).where(
            and_(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id == user_id,
            )
        )
    )
    return result.scalar_one_or_none()


async def _get_guest_member(db, workspace: Workspace, user_id: str) -> tuple[WorkspaceMember, User]:
    """Load an active workspace-only member.

    Organization members are rejected: their workspace role follows the
    organization role and their access ends only with the organization
    membership.
    """
    member = await _find_workspace_member(db, workspace.workspace_id, user_id)
    if member is None or member.status != "active":
        raise NotFoundError("member", user_id)
    if await get_organization_membership(db, workspace.organization_id, user_id) is not None:
        raise ConflictError("Workspace access of organization members follows their organization role")
    result = await db.execute(select(User).where(User.user_id == user_id))
    return member, result.scalar_one()


def _workspace_response(workspace: Workspace, role: str) -> WorkspaceResponse:
    return WorkspaceResponse(
        workspace_id=workspace.workspace_id,
        organization_id=workspace.organization_id,
        name=workspace.name,
        description=workspace.description,
        status=workspace.status,
        user_role=role,
        created_at=workspace.created_at,
        updated_at=workspace.updated_at,
    )


# =============================================================================
# API Endpoints
# =============================================================================

@router.get("", response_model=list[WorkspaceResponse])
async def list_workspaces(
    organization_id: str = Query(..., min_length=1),
    current_user: TokenPayload = Depends(get_current_user),
) -> list[WorkspaceResponse]:
    """List active workspaces of an organization the caller belongs to."""
    async with get_db_session() as db:
        _, membership = await require_organization_member(db, organization_id, current_user.user_id)

        result = await db.execute(
            select(Workspace)
            .where(
                and_(
                    Workspace.organization_id == organization_id,
                    Workspace.status == "active",
                )
            )
            .order_by(Workspace.created_at.desc())
        )
        return [_workspace_response(ws, membership.role) for ws in result.scalars().all()]


@router.post("", response_model=WorkspaceCreateResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(WORKSPACE_CREATE_RATE_LIMIT)
async def create_workspace(
    request: Request,
    body: WorkspaceCreate,
    current_user: TokenPayload = Depends(get_current_user),
) -> WorkspaceCreateResponse:
    """Create a workspace (organization owner only).

    The workspace agent and member inheritance are best effort; their
    failure does not fail the request.
    """
    now = datetime.now(timezone.utc)

    async with get_db_session() as db:
        await require_organization_member(
            db, body.organization_id, current_user.user_id, roles=("owner",)
        )

        workspace_id = str(uuid.uuid4())
        workspace = Workspace(
            workspace_id=workspace_id,
            organization_id=body.organization_id,
            name=body.name,
            description=body.description,
            status="active",
            created_at=now,
            updated_at=now,
        )
        db.add(workspace)
        await db.commit()

        logger.info(f"Created workspace {workspace_id} in organization {body.organization_id}")

        response = WorkspaceCreateResponse(**_workspace_response(workspace, "owner").model_dump())

        response.agent_id = await create_workspace_agent(db, workspace, current_user.user_id)

        members_added = await add_organization_members_to_workspace(db, workspace_id, body.organization_id)
        if members_added is None:
            logger.error(f"Workspace {workspace_id} created without inherited members")
        response.members_added = members_added or 0

        return response


@router.get("/{workspace_id}", response_model=WorkspaceResponse)
async def get_workspace(
    workspace_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> WorkspaceResponse:
    """Get a specific workspace by ID."""
    async with get_db_session() as db:
        access = await check_workspace_access(db, workspace_id, current_user.user_id)
        return _workspace_response(access.workspace, access.role)


@router.patch("/{workspace_id}", response_model=WorkspaceResponse)
async def update_workspace(
    workspace_id: str,
    body: WorkspaceUpdate,
    current_user: TokenPayload = Depends(get_current_user),
) -> WorkspaceResponse:
    """Update a workspace (workspace admins and organization owners)."""
    async with get_db_session() as db:
        access = await check_workspace_access(
            db, workspace_id, current_user.user_id, roles=WORKSPACE_ADMIN_ROLES
        )
        workspace = access.workspace

        if body.name is not None:
            workspace.name = body.name
        if body.description is not None:
            workspace.description = body.description
        workspace.updated_at = datetime.now(timezone.utc)

        await db.commit()

        logger.info(f"Updated workspace {workspace_id}")
        return _workspace_response(workspace, access.role)


@router.delete("/{workspace_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workspace(
    workspace_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> None:
    """Soft delete a workspace and deactivate its agents."""
    now = datetime.now(timezone.utc)

    async with get_db_session() as db:
        access = await check_workspace_access(
            db, workspace_id, current_user.user_id, roles=WORKSPACE_ADMIN_ROLES
        )
        access.workspace.status = "inactive"
        access.workspace.updated_at = now

        await db.execute(
            update(AIAgent)
            .where(AIAgent.workspace_id == workspace_id)
            .values(status="inactive", updated_at=now)
        )
        await db.commit()

        logger.info(f"Deleted workspace {workspace_id}")


@router.get("/{workspace_id}/members", response_model=list[WorkspaceMemberResponse])
async def list_workspace_members(
    workspace_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> list[WorkspaceMemberResponse]:
    """List workspace members."""
    async with get_db_session() as db:
        await check_workspace_access(db, workspace_id, current_user.user_id)

        result = await db.execute(
            select(WorkspaceMember, User)
            .join(User, WorkspaceMember.user_id == User.user_id)
            .where(
                and_(
                    WorkspaceMember.workspace_id == workspace_id,
                    WorkspaceMember.status == "active",
                )
            )
            .order_by(WorkspaceMember.created_at)
        )
        return [_workspace_member_response(member, user) for member, user in result.all()]


@router.post(
    "/{workspace_id}/members",
    response_model=WorkspaceMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_workspace_member(
    workspace_id: str,
    body: WorkspaceMemberAdd,
    current_user: TokenPayload = Depends(get_current_user),
) -> WorkspaceMemberResponse:
    """Give an existing user access to this workspace only (admin/owner).

    Organization members already reach every workspace and are rejected.
    """
    now = datetime.now(timezone.utc)

    async with get_db_session() as db:
        access = await check_workspace_access(
            db, workspace_id, current_user.user_id, roles=WORKSPACE_ADMIN_ROLES
        )

        user = await get_user_by_email(db, body.email)
        if user is None:
            raise NotFoundError("user", body.email)
        if await get_organization_membership(db, access.workspace.organization_id, user.user_id) is not None:
            raise ConflictError("User is a member of the organization")

        member = await _find_workspace_member(db, workspace_id, user.user_id)
        if member is not None and member.status == "active":
            raise ConflictError("User is already a member of this workspace")

        if member is None:
            member = WorkspaceMember(
                workspace_id=workspace_id,
                user_id=user.user_id,
                created_at=now,
            )
            db.add(member)
        member.role = body.role
        member.status = "active"
        member.updated_at = now
        await db.commit()

        logger.info(f"Added user {user.user_id} to workspace {workspace_id} as {body.role}")
        return _workspace_member_response(member, user)


@router.patch("/{workspace_id}/members/{user_id}", response_model=WorkspaceMemberResponse)
async def update_workspace_member_role(
    workspace_id: str,
    user_id: str,
    body: WorkspaceMemberRoleUpdate,
    current_user: TokenPayload = Depends(get_current_user),
) -> WorkspaceMemberResponse:
    """Change the role of a workspace-only member (admin/owner)."""
    async with get_db_session() as db:
        access = await check_workspace_access(
            db, workspace_id, current_user.user_id, roles=WORKSPACE_ADMIN_ROLES
        )
        if user_id == current_user.user_id:
            raise BadRequestError("You cannot change your own role")

        member, user = await _get_guest_member(db, access.workspace, user_id)
        member.role = body.role
        member.updated_at = datetime.now(timezone.utc)
        await db.commit()

        logger.info(f"Changed role of user {user_id} in workspace {workspace_id} to {body.role}")
        return _workspace_member_response(member, user)


@router.delete("/{workspace_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_workspace_member(
    workspace_id: str,
    user_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> None:
    """Remove a workspace-only member (admin/owner)."""
    async with get_db_session() as db:
        access = await check_workspace_access(
            db, workspace_id, current_user.user_id, roles=WORKSPACE_ADMIN_ROLES
        )
        if user_id == current_user.user_id:
            raise BadRequestError("You cannot remove yourself")

        member, _ = await _get_guest_member(db, access.workspace, user_id)
        member.status = "inactive"
        member.updated_at = datetime.now(timezone.utc)
        await db.commit()

        logger.info(f"Removed user {user_id} from workspace {workspace_id}")
