"""Organization membership changes shared by the member and invitation endpoints."""

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from insighter_server.api.deps import ConflictError
from insighter_server.database.models import OrganizationMember, User

logger = logging.getLogger(__name__)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def find_membership(
    db: AsyncSession,
    organization_id: str,
    user_id: str,
) -> OrganizationMember | None:
    """Return the membership row in any status."""
    result = await db.execute(
        select(OrganizationMember).where(
            and_(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.user_id == user_id,
            )
        )
    )
    return result.scalar_one_or_none()


async def join_organization(
    db: AsyncSession,
    organization_id: str,
    user_id: str,
    role: str,
) -> OrganizationMember:
    """Insert a membership, or reactivate one left by an earlier removal.

    Nothing is committed here.

    Raises:
        ConflictError: The user is already an active member
    """
    membership = await find_membership(db, organization_id, user_id)
    if membership is not None and membership.status == "active":
        raise ConflictError("User is already a member of this organization")

    if membership is not None:
        membership.status = "active"
        membership.role = role
        logger.info(f"Reactivating user {user_id} in organization {organization_id}")
        return membership

    membership = OrganizationMember(
        organization_id=organization_id,
        user_id=user_id,
        role=role,
        status="active",
        created_at=datetime.now(timezone.utc),
    )
    db.add(membership)
    return membership
