"""Row-level membership checks shared by the REST handlers."""

import logging
from dataclasses import dataclass

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from insighter_server.api.deps import ForbiddenError, NotFoundError
from insighter_server.database.models import (
    Organization,
    OrganizationMember,
    Workspace,
    WorkspaceMember,
)

logger = logging.getLogger(__name__)

ORG_ADMIN_ROLES = ("owner", "admin")
WORKSPACE_ADMIN_ROLES = ("owner", "admin")


@dataclass
class WorkspaceAccess:
    """Result of a successful workspace access check."""

    workspace: Workspace
    role: str


async def get_active_organization(db: AsyncSession, organization_id: str) -> Organization | None:
    result = await db.execute(
        select(Organization).where(
            and_(
                Organization.organization_id == organization_id,
                Organization.status == "active",
            )
        )
    )
    return result.scalar_one_or_none()


async def get_organization_membership(
    db: AsyncSession,
    organization_id: str,
    user_id: str,
) -> OrganizationMember | None:
    """Return the caller's active membership in an organization, if any."""
    result = await db.execute(
        select(OrganizationMember).where(
            and_(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.user_id == user_id,
                OrganizationMember.status == "active",
            )
        )
    )
    return result.scalar_one_or_none()


async def require_organization_member(
    db: AsyncSession,
    organization_id: str,
    user_id: str,
    roles: tuple[str, ...] | None = None,
) -> tuple[Organization, OrganizationMember]:
    """Load an active organization and the caller's membership.

    Args:
        db: Database session
        organization_id: Organization to check
        user_id: Caller
        roles: Roles allowed, any role when None

    Raises:
        NotFoundError: Organization missing or inactive
        ForbiddenError: Caller is not a member or lacks the role
    """
    organization = await get_active_organization(db, organization_id)
    if organization is None:
        raise NotFoundError("organization", organization_id)

    membership = await get_organization_membership(db, organization_id, user_id)
    if membership is None:
        raise ForbiddenError("Access denied to this organization")

    if roles is not None and membership.role not in roles:
        raise ForbiddenError(f"Requires organization role: {', '.join(roles)}")

    return organization, membership


async def get_active_workspace(db: AsyncSession, workspace_id: str) -> Workspace | None:
    result = await db.execute(
        select(Workspace).where(
            and_(
                Workspace.workspace_id == workspace_id,
                Workspace.status == "active",
            )
        )
    )
    return result.scalar_one_or_none()


async def check_workspace_access(
    db: AsyncSession,
    workspace_id: str,
    user_id: str,
    roles: tuple[str, ...] | None = None,
) -> WorkspaceAccess:
    """Resolve the caller's role on a workspace.

    Organization membership takes precedence over a workspace-specific
    membership.

    Raises:
        NotFoundError: Workspace missing or inactive
        ForbiddenError: No active membership, or role not in ``roles``
    """
    workspace = await get_active_workspace(db, workspace_id)
    if workspace is None:
        raise NotFoundError("workspace", workspace_id)

    role: str | None = None
    org_membership = await get_organization_membership(db, workspace.organization_id, user_id)
    if org_membership is not None:
        role = org_membership.role
    else:
        result = await db.execute(
            select(WorkspaceMember).where(
                and_(
                    WorkspaceMember.workspace_id == workspace_id,
                    WorkspaceMember.user_id == user_id,
                    WorkspaceMember.status == "active",
                )
            )
        )
        ws_membership = result.scalar_one_or_none()
        if ws_membership is not None:
            role = ws_membership.role

    if role is None:
        raise ForbiddenError("Access denied to this workspace")

    if roles is not None and role not in roles:
        raise ForbiddenError(f"Requires workspace role: {', '.join(roles)}")

    return WorkspaceAccess(workspace=workspace, role=role)


async def require_workspace_org_member(
    db: AsyncSession,
    workspace_id: str,
    user_id: str,
) -> Workspace:
    """Require membership in the organization that owns a workspace.

    Used by the OAuth flow, which accepts organization members only.
    """
    workspace = await get_active_workspace(db, workspace_id)
    if workspace is None:
        raise NotFoundError("workspace", workspace_id)

    membership = await get_organization_membership(db, workspace.organization_id, user_id)
    if membership is None:
        logger.warning(f"User {user_id} denied OAuth access to workspace {workspace_id}")
        raise ForbiddenError("Access denied")

    return workspace
