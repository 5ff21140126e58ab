"""Organization invitation endpoints.

Invitations are addressed to the email of an existing account. No email is
sent; the token is returned to the inviter and listed for the invitee, who
accepts it to join the organization and its active workspaces.
"""

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from insighter_server.api.deps import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from insighter_server.auth import TokenPayload, get_current_user
from insighter_server.config import get_settings
from insighter_server.database import Organization, OrganizationInvitation, get_db_session
from insighter_server.services.access import ORG_ADMIN_ROLES, require_organization_member
from insighter_server.services.members import find_membership, get_user_by_email, join_organization
from insighter_server.services.workspaces import add_member_to_organization_workspaces

logger = logging.getLogger(__name__)

router = APIRouter(tags=["invitations"])


# =============================================================================
# Request/Response Models
# =============================================================================

class InvitationCreate(BaseModel):
    email: EmailStr
    role: str = Field("member", pattern="^(owner|admin|member|viewer)$")


class InvitationAccept(BaseModel):
    token: str = Field(..., min_length=1)


class InvitationResponse(BaseModel):
    """Invitation as shown to organization admins."""

    invitation_id: str
    organization_id: str
    organization_name: str
    email: str
    role: str
    status: str
    invited_by: str | None
    expires_at: datetime
    created_at: datetime


class InvitationTokenResponse(InvitationResponse):
    """Invitation including its acceptance token."""

    token: str


class AcceptResponse(BaseModel):
    organization_id: str
    organization_name: str
    role: str
    already_member: bool
    workspaces_added: int


def _invitation_response(
    invitation: OrganizationInvitation,
    organization: Organization,
    with_token: bool = False,
) -> InvitationResponse:
    fields = dict(
        invitation_id=invitation.invitation_id,
        organization_id=invitation.organization_id,
        organization_name=organization.name,
        email=invitation.email,
        role=invitation.role,
        status=invitation.status,
        invited_by=invitation.invited_by,
        expires_at=invitation.expires_at,
        created_at=invitation.created_at,
    )
    if with_token:
        return InvitationTokenResponse(token=invitation.token, **fields)
    return InvitationResponse(**fields)


async def _load_acceptable(
    db: AsyncSession,
    token: str,
    email: str,
) -> tuple[OrganizationInvitation, Organization]:
    """Load a pending, unexpired invitation addressed to ``email``.

    Raises:
        NotFoundError: Unknown token, or the organization is gone
        BadRequestError: Already processed, expired, or addressed to another email
    """
    result = await db.execute(
        select(OrganizationInvitation, Organization)
        .join(Organization, OrganizationInvitation.organization_id == Organization.organization_id)
        .where(OrganizationInvitation.token == token)
    )
    row = result.first()
    if row is None:
        raise NotFoundError("invitation")
    invitation, organization = row

    if invitation.status != "pending":
        raise BadRequestError("Invitation has already been processed", "INVITATION_PROCESSED")
    if invitation.expires_at < datetime.now(timezone.utc):
        raise BadRequestError("Invitation has expired", "INVITATION_EXPIRED")
    if invitation.email != email.lower():
        raise BadRequestError("Invitation email does not match your account", "INVITATION_EMAIL_MISMATCH")
    if organization.status != "active":
        raise NotFoundError("organization", organization.organization_id)

    return invitation, organization


# =============================================================================
# Organization side
# =============================================================================

@router.post(
    "/organizations/{organization_id}/invitations",
    response_model=InvitationTokenResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invitation(
    organization_id: str,
    body: InvitationCreate,
    current_user: TokenPayload = Depends(get_current_user),
) -> InvitationResponse:
    """Invite an existing user (owner/admin; only owners invite owners)."""
    now = datetime.now(timezone.utc)
    email = body.email.lower()

    async with get_db_session() as db:
        organization, caller = await require_organization_member(
            db, organization_id, current_user.user_id, roles=ORG_ADMIN_ROLES
        )
        if body.role == "owner" and caller.role != "owner":
            raise ForbiddenError("Only owners can invite other owners")

        user = await get_user_by_email(db, email)
        if user is None:
            raise NotFoundError("user", email)

        membership = await find_membership(db, organization_id, user.user_id)
        if membership is not None and membership.status == "active":
            raise ConflictError("User is already a member of this organization")

        result = await db.execute(
            select(OrganizationInvitation).where(
                and_(
                    OrganizationInvitation.organization_id == organization_id,
                    OrganizationInvitation.email == email,
                    OrganizationInvitation.status == "pending",
                    OrganizationInvitation.expires_at > now,
                )
            )
        )
        if result.scalars().first() is not None:
            raise ConflictError("Invitation already sent to this email")

        invitation = OrganizationInvitation(
            invitation_id=str(uuid.uuid4()),
            organization_id=organization_id,
            email=email,
            role=body.role,
            invited_by=current_user.user_id,
            token=secrets.token_hex(32),
            status="pending",
            expires_at=now + timedelta(days=get_settings().invitation_expiry_days),
            created_at=now,
            updated_at=now,
        )
        db.add(invitation)
        await db.commit()

        logger.info(f"Invited {email} to organization {organization_id} as {body.role}")
        return _invitation_response(invitation, organization, with_token=True)


@router.get(
    "/organizations/{organization_id}/invitations",
    response_model=list[InvitationResponse],
)
async def list_organization_invitations(
    organization_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> list[InvitationResponse]:
    """List every invitation of an organization, newest first (owner/admin)."""
    async with get_db_session() as db:
        organization, _ = await require_organization_member(
            db, organization_id, current_user.user_id, roles=ORG_ADMIN_ROLES
        )
        result = await db.execute(
            select(OrganizationInvitation)
            .where(OrganizationInvitation.organization_id == organization_id)
            .order_by(OrganizationInvitation.created_at.desc())
        )
        return [_invitation_response(inv, organization) for inv in result.scalars().all()]


@router.delete(
    "/organizations/{organization_id}/invitations/{invitation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def cancel_invitation(
    organization_id: str,
    invitation_id: str,
    current_user: TokenPayload = Depends(get_current_user),
) -> None:
    """Cancel a pending invitation (owner/admin)."""
    async with get_db_session() as db:
        await require_organization_member(
            db, organization_id, current_user.user_id, roles=ORG_ADMIN_ROLES
        )
        result = await db.execute(
            select(OrganizationInvitation).where(
                and_(
                    OrganizationInvitation.organization_id == organization_id,
                    OrganizationInvitation.invitation_id == invitation_id,
                )
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFoundError("invitation", invitation_id)
        if invitation.status != "pending":
            raise BadRequestError("Can only cancel pending invitations")

        invitation.status = "cancelled"
        invitation.updated_at = datetime.now(timezone.utc)
        await db.commit()

        logger.info(f"Cancelled invitation {invitation_id} of organization {organization_id}")


# =============================================================================
# Invitee side
# =============================================================================

@router.get("/invitations", response_model=list[InvitationTokenResponse])
async def list_my_invitations(
    current_user: TokenPayload = Depends(get_current_user),
) -> list[InvitationResponse]:
    """Pending, unexpired invitations addressed to the caller."""
    async with get_db_session() as db:
        result = await db.execute(
            select(OrganizationInvitation, Organization)
            .join(Organization, OrganizationInvitation.organization_id == Organization.organization_id)
            .where(
                and_(
                    OrganizationInvitation.email == current_user.email.lower(),
                    OrganizationInvitation.status == "pending",
                    OrganizationInvitation.expires_at > datetime.now(timezone.utc),
                    Organization.status == "active",
                )
            )
            .order_by(OrganizationInvitation.created_at.desc())
        )
        return [_invitation_response(inv, org, with_token=True) for inv, org in result.all()]


@router.get("/invitations/accept", response_model=InvitationResponse)
async def get_invitation(
    token: str = Query(..., min_length=1),
    current_user: TokenPayload = Depends(get_current_user),
) -> InvitationResponse:
    """Show an invitation the caller can accept."""
    async with get_db_session() as db:
        invitation, organization = await _load_acceptable(db, token, current_user.email)
        return _invitation_response(invitation, organization)


@router.post("/invitations/accept", response_model=AcceptResponse)
async def accept_invitation(
    body: InvitationAccept,
    current_user: TokenPayload = Depends(get_current_user),
) -> AcceptResponse:
    """Join the organization and its active workspaces.

    An invitee who is already a member only has the invitation marked
    accepted. Workspace inheritance is best effort.
    """
    async with get_db_session() as db:
        invitation, organization = await _load_acceptable(db, body.token, current_user.email)
        response = AcceptResponse(
            organization_id=organization.organization_id,
            organization_name=organization.name,
            role=invitation.role,
            already_member=False,
            workspaces_added=0,
        )

        membership = await find_membership(db, organization.organization_id, current_user.user_id)
        if membership is not None and membership.status == "active":
            response.role = membership.role
            response.already_member = True
        else:
            await join_organization(db, organization.organization_id, current_user.user_id, invitation.role)

        invitation.status = "accepted"
        invitation.updated_at = datetime.now(timezone.utc)
        await db.commit()

        logger.info(
            f"User {current_user.user_id} accepted invitation {invitation.invitation_id} "
            f"to organization {organization.organization_id}"
        )
        if response.already_member:
            return response

        added = await add_member_to_organization_workspaces(
            db, response.organization_id, current_user.user_id, response.role
        )
        if added is None:
            logger.error(f"User {current_user.user_id} joined {response.organization_id} without workspaces")
        response.workspaces_added = added or 0
        return response
