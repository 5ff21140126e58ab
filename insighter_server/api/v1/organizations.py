"""Organization management API endpoints."""

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import and_, select

from insighter_server.api.deps import BadRequestError, ForbiddenError, NotFoundError
from insighter_server.auth import TokenPayload, get_current_user
from insighter_server.database import (
    Organization,
    OrganizationMember,
    User,
    Workspace,
    get_db_session,
)
from insighter_server.models import Name
from insighter_server.services.access import ORG_ADMIN_ROLES, require_organization_member
from insighter_server.services.members import get_user_by_email, join_organization
from insighter_server.services.workspaces import (
    add_member_to_organization_workspaces,
    remove_member_from_organization_workspaces,
    sync_member_workspace_roles,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["organizations"])


# =============================================================================
# Request/Response Models
# =============================================================================

class OrganizationCreate(BaseModel):
    """Request model for creating an organization."""

    name: Name = Field(..., description="Organization name")
    description: str | None = Field(None, max_length=1024)


class OrganizationUpdate(BaseModel):
    """Request model for updating an organization."""

    name: Name | None = None
    description: str | None = Field(None, max_length=1024)


class WorkspaceSummary(BaseModel):
    workspace_id: str
    name: str
    description: str | None
    status: str
    created_at: datetime
    updated_at: datetime


class OrganizationResponse(BaseModel):
    """Response model for organization data."""

    organization_id: str
    name: str
    description: str | None
    status: str
    user_role: str
    created_at: datetime
    updated_at: datetime
    workspaces: list[WorkspaceSummary] = Field(default_factory=list)


class MemberAdd(BaseModel):
    """Request model for adding an existing user to an organization."""

    email: EmailStr
    role: str = Field("member", pattern="^(admin|member|viewer)$")


class MemberResponse(BaseModel):
    """Response model for an organization member."""

    user_id: str
    email: str
    name: str
    role: str
    status: str
    created_at: datetime


class MemberAddResponse(MemberResponse):
    workspaces_added: int


class MemberRoleUpdate(BaseModel):
    role: str = Field(..., pattern="^(owner|admin|member|viewer)$")


class MemberRoleResponse(MemberResponse):
    workspaces_updated: int


# =============================================================================
# Helpers
# =============================================================================

async def _active_workspaces(db, organization_id: str) -> list[WorkspaceSummary]:
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
    return [
        WorkspaceSummary(
            workspace_id=ws.workspace_id,
            name=ws.name,
            description=ws.description,
            status=ws.status,
            created_at=ws.created_at,
            updated_at=ws.updated_at,
        )
        for ws in result.scalars().all()
    ]


def _member_response(membership: OrganizationMember, user: User) -> MemberResponse:
    return MemberResponse(
        user_id=user.user_id,
        email=user.email,
        name=user.name,
        role=membership.role,
        status=membership.status,
        created_at=membership.created_at,
    )


async def _get_active_member(db, organization_id: str, user_id: str) -> tuple[OrganizationMember, User]:
    result = await db.execute(
        select(OrganizationMember, User)
        .join(User, OrganizationMember.user_id == User.user_id)
        .where(
            and_(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.user_id == user_id,
                OrganizationMember.status == "active",
            )
        )
    )
    row = result.first()
    if row is None:
        raise NotFoundError("member", user_id)
    return row[0], row[1]


def _organization_response(
    organization: Organization,
    role: str,
    workspaces: list[WorkspaceSummary] | None = None,
) -> OrganizationResponse:
    return OrganizationResponse(
        organization_id=organization.organization_id,
        name=organization.name,
        description=organization.description,
        status=organization.status,
        user_role=role,
        created_at=organization.created_at,
        updated_at=organization.updated_at,
        workspaces=workspaces or [],
    )


# =============================================================================
# API Endpoints
# =============================================================================

@router.get("", response_model=list[OrganizationResponse])
async def list_organizations(
    current_user: TokenPayload = Depends(get_current_user),
) -> list[OrganizationResponse]:
    """List active organizations the caller belongs to, with their active workspaces."""
    async with get_db_session() as db:
        result = await db.execute(
            select(Organization, OrganizationMember)
            .join(OrganizationMember, Organization.organization_id == OrganizationMember.organization_id)
            .where(
                and_(
                    OrganizationMember.user_id == current_user.user_id,
                    OrganizationMember.status == "active",
                    Organization.status == "active",
                )
            )
            .order_by(Organization.created_at.desc())
        )
        rows = result.all()

        organizations = []
        for organization, membership in rows:
            workspaces = await _active_workspaces(db, organization.organization_id)
            organizations.append(_organization_response(organization, membership.role, workspaces))

        return organizations


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    body: OrganizationCreate,
    current_user: TokenPayload = Depends(get_current_user),
) -> OrganizationResponse:
    """Create an organization; the creator becomes its owner."""
    now = datetime.now(timezone.utc)

    async with get_db_session() as db:
        organization_id = str(uuid.uuid4())
        organization = Organization(
            organization_id=organization_id,
            name=body.name,
            description=body.description,
            status="active",
            created_by=current_user.user_id,
            created_at=now,
            updated_at=now,
        )
        db.add(organization)
        db.add(OrganizationMember(
            organization_id=organization_id,
            user_id=current_user.user_id,
            role="owner",
            status="active",
            created_at=now,
        ))
        await db.commit()

        logger.info(f"Created organization {organization_id} for user {current_user.user_id}")
        return _organization_response(organization, "owner")


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> OrganizationResponse:
    """Get an organization the caller belongs to."""
    async with get_db_session() as db:
        organization, membership = await require_organization_member(
            db, organization_id, current_user.user_id
        )
        workspaces = await _active_workspaces(db, organization_id)
        return _organization_response(organization, membership.role, workspaces)


@router.patch("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: str,
    body: OrganizationUpdate,
    current_user: TokenPayload = Depends(get_current_user),
) -> OrganizationResponse:
    """Update an organization (owner/admin)."""
    async with get_db_session() as db:
        organization, membership = await require_organization_member(
            db, organization_id, current_user.user_id, roles=ORG_ADMIN_ROLES
        )

        if body.name is not None:
            organization.name = body.name
        if body.description is not None:
            organization.description = body.description
        organization.updated_at = datetime.now(timezone.utc)

        await db.commit()

        logger.info(f"Updated organization {organization_id}")
        workspaces = await _active_workspaces(db, organization_id)
        return _organization_response(organization, membership.role, workspaces)


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(
    organization_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> None:
    """Soft delete an organization (owner only)."""
    async with get_db_session() as db:
        organization, _ = await require_organization_member(
            db, organization_id, current_user.user_id, roles=("owner",)
        )
        organization.status = "inactive"
        organization.updated_at = datetime.now(timezone.utc)
        await db.commit()

        logger.info(f"Deleted organization {organization_id}")


@router.get("/{organization_id}/members", response_model=list[MemberResponse])
async def list_members(
    organization_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> list[MemberResponse]:
    """List active organization members."""
    async with get_db_session() as db:
        await require_organization_member(db, organization_id, current_user.user_id)

        result = await db.execute(
            select(OrganizationMember, User)
            .join(User, OrganizationMember.user_id == User.user_id)
            .where(
                and_(
                    OrganizationMember.organization_id == organization_id,
                    OrganizationMember.status == "active",
                )
            )
            .order_by(OrganizationMember.created_at.desc())
        )

        return [_member_response(member, user) for member, user in result.all()]


@router.post(
    "/{organization_id}/members",
    response_model=MemberAddResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    organization_id: str,
    body: MemberAdd,
    current_user: TokenPayload = Depends(get_current_user),
) -> MemberAddResponse:
    """Add an existing user to the organization (owner/admin).

    A previously removed member is reactivated. The member is also added to
    every active workspace.
    """
    async with get_db_session() as db:
        await require_organization_member(
            db, organization_id, current_user.user_id, roles=ORG_ADMIN_ROLES
        )

        user = await get_user_by_email(db, body.email)
        if user is None:
            raise NotFoundError("user", body.email)

        membership = await join_organization(db, organization_id, user.user_id, body.role)
        await db.commit()
        logger.info(f"Added user {user.user_id} to organization {organization_id} as {body.role}")

        response = MemberAddResponse(
            **_member_response(membership, user).model_dump(),
            workspaces_added=0,
        )
        added = await add_member_to_organization_workspaces(db, organization_id, response.user_id, body.role)
        response.workspaces_added = added or 0
        return response


@router.patch("/{organization_id}/members/{user_id}", response_model=MemberRoleResponse)
async def update_member_role(
    organization_id: str,
    user_id: str,
    body: MemberRoleUpdate,
    current_user: TokenPayload = Depends(get_current_user),
) -> MemberRoleResponse:
    """Change a member's role (owner/admin).

    Only owners may grant the owner role or change another owner. The
    member's workspace roles are remapped in the same transaction.
    """
    async with get_db_session() as db:
        _, caller = await require_organization_member(
            db, organization_id, current_user.user_id, roles=ORG_ADMIN_ROLES
        )
        if user_id == current_user.user_id:
            raise BadRequestError("You cannot change your own role")

        membership, user = await _get_active_member(db, organization_id, user_id)
        if "owner" in (body.role, membership.role) and caller.role != "owner":
            raise ForbiddenError("Only owners can grant or change the owner role")

        membership.role = body.role
        updated = await sync_member_workspace_roles(db, organization_id, user_id, body.role)
        await db.commit()

        logger.info(f"Changed role of user {user_id} in organization {organization_id} to {body.role}")
        return MemberRoleResponse(
            **_member_response(membership, user).model_dump(),
            workspaces_updated=updated,
        )


@router.delete("/{organization_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    organization_id: str,
    user_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> None:
    """Remove a member (owner/admin).

    The membership and the member's workspace rows and agent grants in this
    organization are deactivated. Only owners may remove an owner.
    """
    async with get_db_session() as db:
        _, caller = await require_organization_member(
            db, organization_id, current_user.user_id, roles=ORG_ADMIN_ROLES
        )
        if user_id == current_user.user_id:
            raise BadRequestError("You cannot remove yourself from the organization")

        membership, _ = await _get_active_member(db, organization_id, user_id)
        if membership.role == "owner" and caller.role != "owner":
            raise ForbiddenError("Only owners can remove other owners")

        membership.status = "inactive"
        removed = await remove_member_from_organization_workspaces(db, organization_id, user_id)
        await db.commit()

        logger.info(
            f"Removed user {user_id} from organization {organization_id} and {removed} workspaces"
        )
