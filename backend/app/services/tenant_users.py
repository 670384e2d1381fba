"""Membership management within a tenant."""

import uuid
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import delete, func, select

from backend.app.api.errors import AuthorizationError, BadRequestError, NotFoundError
from backend.app.db.models import TenantUser, UserProfile
from backend.app.models.common import MembershipStatus, Role
from backend.app.services.base import BaseEntityService


class TenantUserOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    email: str
    display_name: str | None
    first_name: str | None
    last_name: str | None
    role: Role
    status: MembershipStatus
    invited_by: uuid.UUID | None
    invited_by_email: str | None
    joined_at: datetime


class UserStats(BaseModel):
    total: int
    active: int
    pending: int
    inactive: int
    by_role: dict[str, int]


def _to_out(membership: TenantUser, profile: UserProfile) -> TenantUserOut:
    return TenantUserOut(
        id=membership.tenant_user_id,
        user_id=profile.user_id,
        email=profile.email,
        display_name=profile.display_name,
        first_name=profile.first_name,
        last_name=profile.last_name,
        role=Role(membership.role),
        status=MembershipStatus(membership.status),
        invited_by=membership.invited_by,
        invited_by_email=membership.invited_by_email,
        joined_at=membership.created_at,
    )


def _is_active_owner(membership: TenantUser) -> bool:
    return (
        membership.role == Role.owner.value
        and membership.status == MembershipStatus.active.value
    )


class TenantUserService(BaseEntityService):
    """Lists members and changes their role or status.

    Invariant: a tenant never loses its last active owner through this service.
    """

    def _members_query(self):
        return (
            select(TenantUser, UserProfile)
            .join(UserProfile, UserProfile.user_id == TenantUser.user_id)
            .where(TenantUser.tenant_id == self.tenant_id)
        )

    async def _get_membership(self, tenant_user_id: uuid.UUID) -> TenantUser:
        result = await self.session.execute(
            select(TenantUser).where(
                TenantUser.tenant_user_id == tenant_user_id,
                TenantUser.tenant_id == self.tenant_id,
            )
        )
        membership = result.scalar_one_or_none()
        if membership is None:
            raise NotFoundError("Tenant user not found")
        return membership

    async def _count_active_owners(self) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(TenantUser)
            .where(
                TenantUser.tenant_id == self.tenant_id,
                TenantUser.role == Role.owner.value,
                TenantUser.status == MembershipStatus.active.value,
            )
        )
        return int(result.scalar_one())

    async def list_tenant_users(self) -> list[TenantUserOut]:
        self.require("read_tenant_users", "Insufficient permissions to list tenant users")

        result = await self.session.execute(
            self._members_query().order_by(TenantUser.created_at.desc())
        )
        return [_to_out(m, p) for m, p in result.all()]

    async def get_tenant_user(self, tenant_user_id: uuid.UUID) -> TenantUserOut:
        self.require("read_tenant_users", "Insufficient permissions to read tenant users")

        result = await self.session.execute(
            self._members_query().where(TenantUser.tenant_user_id == tenant_user_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Tenant user not found")
        return _to_out(*row)

    async def get_user_stats(self) -> UserStats:
        self.require("read_tenant_users", "Insufficient permissions to read user statistics")

        result = await self.session.execute(
            select(TenantUser.role, TenantUser.status).where(TenantUser.tenant_id == self.tenant_id)
        )
        rows = result.all()
        by_role = {role.value: 0 for role in Role}
        for role, _ in rows:
            by_role[role] = by_role.get(role, 0) + 1

        return UserStats(
            total=len(rows),
            active=sum(1 for _, s in rows if s == MembershipStatus.active.value),
            pending=sum(1 for _, s in rows if s == MembershipStatus.pending.value),
            inactive=sum(1 for _, s in rows if s == MembershipStatus.inactive.value),
            by_role=by_role,
        )

    async def update_role(self, tenant_user_id: uuid.UUID, role: Role) -> TenantUserOut:
        """Change a member's role.

        Raises:
            AuthorizationError: Without manage_users, or when a non-owner
                promotes someone to owner
            BadRequestError: If the change would leave the tenant without an owner
            NotFoundError: If the membership is not in this tenant
        """
        self.require("manage_users", "Insufficient permissions to change roles")
        membership = await self._get_membership(tenant_user_id)

        if _is_active_owner(membership) and role != Role.owner:
            if await self._count_active_owners() <= 1:
                raise BadRequestError("Cannot change role: tenant must have at least one owner")
        if role == Role.owner and self.role != Role.owner:
            raise AuthorizationError("Only owners can promote users to owner role")

        membership.role = role.value
        await self.session.flush()
        return await self.get_tenant_user(tenant_user_id)

    async def update_status(
        self, tenant_user_id: uuid.UUID, status: MembershipStatus
    ) -> TenantUserOut:
        """Activate or deactivate a member. The last active owner cannot be deactivated."""
        self.require("manage_users", "Insufficient permissions to change status")
        membership = await self._get_membership(tenant_user_id)

        if (
            _is_active_owner(membership)
            and status != MembershipStatus.active
            and await self._count_active_owners() <= 1
        ):
            raise BadRequestError("Cannot deactivate the last owner of the tenant")

        membership.status = status.value
        await self.session.flush()
        return await self.get_tenant_user(tenant_user_id)

    async def remove_user(self, tenant_user_id: uuid.UUID) -> None:
        """Remove a member from the tenant.

        Raises:
            AuthorizationError: Without remove_users
            BadRequestError: When removing yourself or the last owner
            NotFoundError: If the membership is not in this tenant
        """
        self.require("remove_users", "Insufficient permissions to remove user")
        membership = await self._get_membership(tenant_user_id)

        if membership.user_id == self.user_id:
            raise BadRequestError("You cannot remove yourself from the tenant")
        if _is_active_owner(membership) and await self._count_active_owners() <= 1:
            raise BadRequestError("Cannot remove the last owner of the tenant")

        await self.session.execute(
            delete(TenantUser).where(TenantUser.tenant_user_id == membership.tenant_user_id)
        )
