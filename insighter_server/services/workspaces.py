"""Workspace provisioning: default agent and membership inheritance."""

import json
import logging
import random
import uuid
from datetime import datetime, timezone

from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from insighter_server.database.models import (
    AgentAccess,
    AIAgent,
    OrganizationMember,
    Workspace,
    WorkspaceMember,
)

logger = logging.getLogger(__name__)

_AVATAR_URL = "https://images.unsplash.com/photo-{}?w=150&h=150&fit=crop&crop=face&auto=format&q=80"

AGENT_AVATARS = [
    {"image": _AVATAR_URL.format(photo), "name": name}
    for photo, name in [
        ("1507003211169-0a1dd7228f2d", "Alex"),
        ("1494790108755-2616b612b786", "Sarah"),
        ("1472099645785-5658abf4ff4e", "Michael"),
        ("1438761681033-6461ffad8d80", "Emma"),
        ("1500648767791-00dcc994a43e", "David"),
        ("1544005313-94ddf0286df2", "Lisa"),
        ("1506794778202-cad84cf45f1d", "James"),
        ("1534528741775-53994a69daeb", "Sophia"),
        ("1507591064344-4c6ce005b128", "Ryan"),
        ("1487412720507-e7ab37603c6f", "Olivia"),
        ("1519345182560-3f2917c472ef", "Chris"),
        ("1489424731084-a5d8b219a5bb", "Maya"),
        ("1507003211169-0a1dd7228f2d", "Jordan"),
        ("1506794778202-cad84cf45f1d", "Taylor"),
        ("1494790108755-2616b612b786", "Casey"),
        ("1472099645785-5658abf4ff4e", "Morgan"),
        ("1438761681033-6461ffad8d80", "Riley"),
        ("1500648767791-00dcc994a43e", "Avery"),
        ("1544005313-94ddf0286df2", "Quinn"),
        ("1506794778202-cad84cf45f1d", "Sage"),
    ]
]


def map_organization_role_to_workspace_role(organization_role: str) -> str:
    if organization_role in ("owner", "admin"):
        return "admin"
    if organization_role == "viewer":
        return "viewer"
    return "member"


def random_agent_avatar() -> dict[str, str]:
    return dict(random.choice(AGENT_AVATARS))


async def _active_org_members(db: AsyncSession, organization_id: str) -> list[OrganizationMember]:
    result = await db.execute(
        select(OrganizationMember).where(
            and_(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.status == "active",
            )
        )
    )
    return list(result.scalars().all())


def _organization_workspace_ids(organization_id: str):
    return select(Workspace.workspace_id).where(Workspace.organization_id == organization_id)


def _organization_agent_ids(organization_id: str):
    return select(AIAgent.agent_id).where(
        AIAgent.workspace_id.in_(_organization_workspace_ids(organization_id))
    )


async def create_workspace_agent(
    db: AsyncSession,
    workspace: Workspace,
    created_by: str,
) -> str | None:
    """Create the workspace's analyzer agent and grant read access to every
    organization member.

    Failures are logged and swallowed; workspace creation does not depend
    on the agent.

    Returns:
        The new agent id, or None on failure
    """
    now = datetime.now(timezone.utc)
    agent_id = str(uuid.uuid4())
    workspace_id = workspace.workspace_id
    try:
        agent = AIAgent(
            agent_id=agent_id,
            workspace_id=workspace_id,
            name=f"{workspace.name} Agent",
            description="AI agent for analyzing workspace data and answering questions",
            agent_type="data_analyzer",
            status="active",
            config=json.dumps({"avatar": random_agent_avatar()}),
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        db.add(agent)

        for member in await _active_org_members(db, workspace.organization_id):
            db.add(AgentAccess(
                agent_id=agent_id,
                user_id=member.user_id,
                access_level="read",
                granted_by=created_by,
                is_active=True,
                granted_at=now,
            ))

        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to create agent for workspace {workspace_id}: {e}")
        return None

    logger.info(f"Created agent {agent_id} for workspace {workspace_id}")
    return agent_id


async def add_organization_members_to_workspace(
    db: AsyncSession,
    workspace_id: str,
    organization_id: str,
) -> int | None:
    """Copy every active organization member into ``workspace_members``.

    Returns:
        Number of members added, or None when the insert failed
    """
    now = datetime.now(timezone.utc)
    try:
        members = await _active_org_members(db, organization_id)

        result = await db.execute(
            select(WorkspaceMember.user_id).where(WorkspaceMember.workspace_id == workspace_id)
        )
        existing = set(result.scalars().all())

        added = 0
        for member in members:
            if member.user_id in existing:
                continue
            db.add(WorkspaceMember(
                workspace_id=workspace_id,
                user_id=member.user_id,
                role=map_organization_role_to_workspace_role(member.role),
                status="active",
                created_at=now,
                updated_at=now,
            ))
            added += 1

        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error adding organization members to workspace {workspace_id}: {e}")
        return None

    logger.info(f"Added {added} organization members to workspace {workspace_id}")
    return added


async def add_member_to_organization_workspaces(
    db: AsyncSession,
    organization_id: str,
    user_id: str,
    organization_role: str,
) -> int | None:
    """Give a new or returning organization member every active workspace.

    Rows left inactive by an earlier removal are reactivated with the
    mapped role, along with the member's agent grants.

    Returns:
        Number of workspaces joined, or None when the insert failed
    """
    now = datetime.now(timezone.utc)
    workspace_role = map_organization_role_to_workspace_role(organization_role)
    try:
        result = await db.execute(
            select(Workspace.workspace_id).where(
                and_(
                    Workspace.organization_id == organization_id,
                    Workspace.status == "active",
                )
            )
        )
        workspace_ids = list(result.scalars().all())

        result = await db.execute(
            select(WorkspaceMember).where(WorkspaceMember.user_id == user_id)
        )
        existing = {row.workspace_id: row for row in result.scalars().all()}

        added = 0
        for workspace_id in workspace_ids:
            row = existing.get(workspace_id)
            if row is not None:
                if row.status != "active":
                    row.status = "active"
                    row.role = workspace_role
                    row.updated_at = now
                    added += 1
                continue
            db.add(WorkspaceMember(
                workspace_id=workspace_id,
                user_id=user_id,
                role=workspace_role,
                status="active",
                created_at=now,
                updated_at=now,
            ))
            added += 1

        await db.execute(
            update(AgentAccess)
            .where(
                and_(
                    AgentAccess.user_id == user_id,
                    AgentAccess.agent_id.in_(_organization_agent_ids(organization_id)),
                )
            )
            .values(is_active=True)
            .execution_options(synchronize_session=False)
        )

        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error adding user {user_id} to workspaces of {organization_id}: {e}")
        return None

    logger.info(f"Added user {user_id} to {added} workspaces in organization {organization_id}")
    return added


async def sync_member_workspace_roles(
    db: AsyncSession,
    organization_id: str,
    user_id: str,
    organization_role: str,
) -> int:
    """Remap a member's active workspace rows after an organization role change.

    The update joins the caller's transaction; nothing is committed here.

    Returns:
        Number of workspace memberships updated
    """
    result = await db.execute(
        update(WorkspaceMember)
        .where(
            and_(
                WorkspaceMember.user_id == user_id,
                WorkspaceMember.status == "active",
                WorkspaceMember.workspace_id.in_(_organization_workspace_ids(organization_id)),
            )
        )
        .values(
            role=map_organization_role_to_workspace_role(organization_role),
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def remove_member_from_organization_workspaces(
    db: AsyncSession,
    organization_id: str,
    user_id: str,
) -> int:
    """Deactivate a departing member's workspace rows and agent grants.

    The updates join the caller's transaction; nothing is committed here.

    Returns:
        Number of workspace memberships deactivated
    """
    result = await db.execute(
        update(WorkspaceMember)
        .where(
            and_(
                WorkspaceMember.user_id == user_id,
                WorkspaceMember.status == "active",
                WorkspaceMember.workspace_id.in_(_organization_workspace_ids(organization_id)),
            )
        )
        .values(status="inactive", updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(AgentAccess)
        .where(
            and_(
                AgentAccess.user_id == user_id,
                AgentAccess.agent_id.in_(_organization_agent_ids(organization_id)),
            )
        )
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
