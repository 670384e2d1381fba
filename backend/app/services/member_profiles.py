"""Member profiles: CRM-facing profiles attached to tenant memberships."""

import uuid
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import delete, select

from backend.app.api.errors import ConflictError, NotFoundError
from backend.app.db.models import MemberProfile, TenantUser, UserProfile
from backend.app.models.common import Role
from backend.app.services.base import BaseEntityService


class MemberWithStatus(BaseModel):
    tenant_user_id: uuid.UUID
    email: str
    display_name: str | None
    role: Role
    has_member_profile: bool
    member_profile_id: uuid.UUID | None
    member_profile_created_at: datetime | None


class MemberProfileOut(BaseModel):
    member_profile_id: uuid.UUID
    tenant_user_id: uuid.UUID
    created_at: datetime


class MemberProfileService(BaseEntityService):
    async def list_members_with_status(self) -> list[MemberWithStatus]:
        """List every member of the tenant and whether they have a profile."""
        self.require("read_tenant_users", "Insufficient permissions to list members")

        result = await self.session.execute(
            select(TenantUser, UserProfile, MemberProfile)
            .join(UserProfile, UserProfile.user_id == TenantUser.user_id)
            .outerjoin(MemberProfile, MemberProfile.tenant_user_id == TenantUser.tenant_user_id)
            .where(TenantUser.tenant_id == self.tenant_id)
            .order_by(UserProfile.email)
        )
        return [
            MemberWithStatus(
                tenant_user_id=membership.tenant_user_id,
                email=profile.email,
                display_name=profile.display_name,
                role=Role(membership.role),
                has_member_profile=member_profile is not None,
                member_profile_id=member_profile.member_profile_id if member_profile else None,
                member_profile_created_at=member_profile.created_at if member_profile else None,
            )
            for membership, profile, member_profile in result.all()
        ]

    async def create_member_profile(self, tenant_user_id: uuid.UUID) -> MemberProfileOut:
        """Create the profile for one membership.

        Raises:
            NotFoundError: If the membership is not in this tenant
            ConflictError: If the membership already has a profile
        """
        self.require("manage_users", "Insufficient permissions to create member profiles")

        membership = await self.session.execute(
            select(TenantUser.tenant_user_id).where(
                TenantUser.tenant_user_id == tenant_user_id,
                TenantUser.tenant_id == self.tenant_id,
            )
        )
        if membership.first() is None:
            raise NotFoundError("Tenant user not found")

        existing = await self.session.execute(
            select(MemberProfile.member_profile_id).where(
                MemberProfile.tenant_user_id == tenant_user_id
            )
        )
        if existing.first() is not None:
            raise ConflictError("Member profile already exists for this user")

        profile = MemberProfile(tenant_id=self.tenant_id, tenant_user_id=tenant_user_id)
        self.session.add(profile)
        await self.session.flush()
        return MemberProfileOut(
            member_profile_id=profile.member_profile_id,
            tenant_user_id=profile.tenant_user_id,
            created_at=profile.created_at,
        )

    async def delete_member_profile(self, member_profile_id: uuid.UUID) -> None:
        self.require("manage_users", "Insufficient permissions to delete member profiles")

        result = await self.session.execute(
            delete(MemberProfile).where(
                MemberProfile.member_profile_id == member_profile_id,
                MemberProfile.tenant_id == self.tenant_id,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError("Member profile not found")
