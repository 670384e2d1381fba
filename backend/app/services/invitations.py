"""Tenant invitations: issue, list, resend, cancel, accept and decline."""

import logging
import secrets
import uuid
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.errors import AuthorizationError, BadRequestError, ConflictError, NotFoundError
from backend.app.db.models import Tenant, TenantInvitation, TenantUser, UserProfile, utcnow
from backend.app.models.common import InvitationStatus, MembershipStatus, Role
from backend.app.services.base import BaseEntityService, PermissionContext

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
DEFAULT_TTL_DAYS = 7


class InvitationOut(BaseModel):
    """Invitation as shown to tenant admins. The token is never exposed."""

    model_config = ConfigDict(from_attributes=True)

    invitation_id: uuid.UUID
    tenant_id: uuid.UUID
    email: str
    role: Role
    status: InvitationStatus
    message: str | None
    invited_by: uuid.UUID
    expires_at: datetime
    accepted_at: datetime | None
    created_at: datetime


class InvitationPreview(BaseModel):
    """What the invitee sees before accepting."""

    invitation_id: uuid.UUID
    email: str
    role: Role
    expires_at: datetime
    tenant_name: str
    tenant_slug: str


class InvitationStats(BaseModel):
    total: int
    pending: int
    accepted: int
    declined: int
    expired: int


class AcceptedInvitation(BaseModel):
    tenant_id: uuid.UUID
    tenant_slug: str
    tenant_name: str
    role: Role
    tenant_user_id: uuid.UUID


def generate_invitation_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def send_invitation_email(invitation: TenantInvitation, accept_url: str, message: str | None) -> None:
    """Deliver the invitation e-mail.

    No mail provider is wired in; the delivery is logged.
    """
    logger.info(
        f"Invitation email to {invitation.email}",
        extra={
            "structured": {
                "invitation_id": str(invitation.invitation_id),
                "tenant_id": str(invitation.tenant_id),
                "email": invitation.email,
                "accept_url": accept_url,
                "has_message": bool(message),
            }
        },
    )


class InvitationService(BaseEntityService):
    """Tenant-side invitation management."""

    def __init__(
        self,
        session: AsyncSession,
        permission_context: PermissionContext,
        *,
        site_url: str = "",
        ttl_days: int = DEFAULT_TTL_DAYS,
    ) -> None:
        super().__init__(session, permission_context)
        self.site_url = site_url
        self.ttl = timedelta(days=ttl_days)

    def accept_url(self, token: str) -> str:
        return f"{self.site_url}/auth/accept-invitation?token={token}"

    async def _is_member(self, tenant_id: uuid.UUID, email: str) -> bool:
        result = await self.session.execute(
            select(TenantUser.tenant_user_id)
            .join(UserProfile, UserProfile.user_id == TenantUser.user_id)
            .where(TenantUser.tenant_id == tenant_id, func.lower(UserProfile.email) == email)
        )
        return result.first() is not None

    async def _pending_for(self, email: str) -> TenantInvitation | None:
        result = await self.session.execute(
            select(TenantInvitation).where(
                TenantInvitation.tenant_id == self.tenant_id,
                TenantInvitation.email == email,
                TenantInvitation.status == InvitationStatus.pending.value,
            )
        )
        return result.scalars().first()

    async def _get(self, invitation_id: uuid.UUID) -> TenantInvitation:
        result = await self.session.execute(
            select(TenantInvitation).where(
                TenantInvitation.invitation_id == invitation_id,
                TenantInvitation.tenant_id == self.tenant_id,
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            raise NotFoundError("Invitation not found")
        return invitation

    async def send_invitation(
        self, email: str, role: Role, message: str | None = None
    ) -> InvitationOut:
        """Invite an e-mail address into the tenant.

        Raises:
            AuthorizationError: Without invite_users, or a non-owner inviting an owner
            ConflictError: If the address is already a member or has a pending invitation
        """
        self.require("invite_users", "Insufficient permissions to send invitations")
        if role == Role.owner and self.role != Role.owner:
            raise AuthorizationError("Only owners can invite owners")

        email = email.strip().lower()
        if await self._is_member(self.tenant_id, email):
            raise ConflictError("User is already a member of this tenant")
        if await self._pending_for(email) is not None:
            raise ConflictError("There is already a pending invitation for this email")

        invitation = TenantInvitation(
            tenant_id=self.tenant_id,
            email=email,
            role=role.value,
            token=generate_invitation_token(),
            status=InvitationStatus.pending.value,
            invited_by=self.user_id,
            message=message,
            expires_at=utcnow() + self.ttl,
        )
        self.session.add(invitation)
        await self.session.flush()

        send_invitation_email(invitation, self.accept_url(invitation.token), message)
        return InvitationOut.model_validate(invitation)

    async def list_invitations(self) -> list[InvitationOut]:
        self.require("read_invitations", "Insufficient permissions to list invitations")

        result = await self.session.execute(
            select(TenantInvitation)
            .where(TenantInvitation.tenant_id == self.tenant_id)
            .order_by(TenantInvitation.created_at.desc())
        )
        return [InvitationOut.model_validate(row) for row in result.scalars()]

    async def get_invitation_stats(self) -> InvitationStats:
        self.require("read_invitations", "Insufficient permissions to view invitation statistics")

        result = await self.session.execute(
            select(TenantInvitation.status, func.count())
            .where(TenantInvitation.tenant_id == self.tenant_id)
            .group_by(TenantInvitation.status)
        )
        counts = {status: int(n) for status, n in result.all()}
        return InvitationStats(
            total=sum(counts.values()),
            **{s.value: counts.get(s.value, 0) for s in InvitationStatus},
        )

    async def resend_invitation(self, invitation_id: uuid.UUID) -> InvitationOut:
        """Issue a fresh token and expiry for a pending invitation.

        Raises:
            BadRequestError: If the invitation is no longer pending
        """
        self.require("manage_invitations", "Insufficient permissions to resend invitation")
        invitation = await self._get(invitation_id)
        if invitation.status != InvitationStatus.pending.value:
            raise BadRequestError("Can only resend pending invitations")

        invitation.token = generate_invitation_token()
        invitation.expires_at = utcnow() + self.ttl
        await self.session.flush()

        send_invitation_email(invitation, self.accept_url(invitation.token), invitation.message)
        return InvitationOut.model_validate(invitation)

    async def cancel_invitation(self, invitation_id: uuid.UUID) -> None:
        self.require("manage_invitations", "Insufficient permissions to cancel invitation")
        invitation = await self._get(invitation_id)
        await self.session.execute(
            delete(TenantInvitation).where(
                TenantInvitation.invitation_id == invitation.invitation_id
            )
        )


class InvitationRedemption:
    """Token-authorized side of invitations; needs no tenant context."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_token(self, token: str) -> TenantInvitation | None:
        """Find a pending, unexpired invitation.

        A pending invitation past its expiry is marked expired (committed
        immediately, so the mark survives the failing request) and treated
        as unknown.
        """
        result = await self.session.execute(
            select(TenantInvitation).where(
                TenantInvitation.token == token,
                TenantInvitation.status == InvitationStatus.pending.value,
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is None:
            return None

        if invitation.expires_at < utcnow():
            invitation.status = InvitationStatus.expired.value
            await self.session.commit()
            return None
        return invitation

    async def _require(self, token: str) -> TenantInvitation:
        invitation = await self.get_by_token(token)
        if invitation is None:
            raise NotFoundError("Invalid or expired invitation")
        return invitation

    async def preview(self, token: str) -> InvitationPreview:
        invitation = await self._require(token)
        tenant = await self.session.get(Tenant, invitation.tenant_id)
        if tenant is None:
            raise NotFoundError("Invalid or expired invitation")
        return InvitationPreview(
            invitation_id=invitation.invitation_id,
            email=invitation.email,
            role=Role(invitation.role),
            expires_at=invitation.expires_at,
            tenant_name=tenant.name,
            tenant_slug=tenant.slug,
        )

    async def accept(self, token: str, user_id: uuid.UUID) -> AcceptedInvitation:
        """Redeem an invitation, creating exactly one membership.

        Raises:
            NotFoundError: If the token is unknown, used or expired
            ConflictError: If the caller is already a member
        """
        invitation = await self._require(token)
        tenant = await self.session.get(Tenant, invitation.tenant_id)
        if tenant is None:
            raise NotFoundError("Invalid or expired invitation")

        existing = await self.session.execute(
            select(TenantUser.tenant_user_id).where(
                TenantUser.tenant_id == invitation.tenant_id, TenantUser.user_id == user_id
            )
        )
        if existing.first() is not None:
            raise ConflictError("User is already a member of this tenant")

        inviter = await self.session.get(UserProfile, invitation.invited_by)
        membership = TenantUser(
            tenant_id=invitation.tenant_id,
            user_id=user_id,
            role=invitation.role,
            status=MembershipStatus.active.value,
            invited_by=invitation.invited_by,
            invited_by_email=inviter.email if inviter else None,
        )
        self.session.add(membership)

        invitation.status = InvitationStatus.accepted.value
        invitation.accepted_at = utcnow()
        await self.session.flush()

        return AcceptedInvitation(
            tenant_id=tenant.tenant_id,
            tenant_slug=tenant.slug,
            tenant_name=tenant.name,
            role=Role(invitation.role),
            tenant_user_id=membership.tenant_user_id,
        )

    async def decline(self, token: str) -> None:
        invitation = await self._require(token)
        invitation.status = InvitationStatus.declined.value
        await self.session.flush()
