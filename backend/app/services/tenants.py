"""Tenant lifecycle: creation with an owner, lookup, update and deletion."""

import secrets
import string
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from sqlalchemy import delete, select

from backend.app.api.errors import ConflictError, NotFoundError
from backend.app.db.models import Tenant, TenantUser
from backend.app.models.common import MembershipStatus, Role
from backend.app.services.base import BaseEntityService

SLUG_ALPHABET = string.ascii_lowercase + string.digits
SLUG_LENGTH = 8
SLUG_ATTEMPTS = 5


class TenantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tenant_id: uuid.UUID
    slug: str
    name: str
    status: str
    subscription_tier: str
    created_at: datetime
    updated_at: datetime


class UserTenantOut(TenantOut):
    """A tenant as seen by one of its members."""

    role: Role


def generate_slug() -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(SLUG_LENGTH))


class TenantService(BaseEntityService):
    """Tenant operations. Creation and listing need no tenant context."""

    async def _slug_taken(self, slug: str) -> bool:
        result = await self.session.execute(select(Tenant.tenant_id).where(Tenant.slug == slug))
        return result.first() is not None

    async def create_tenant_with_owner(self, name: str) -> UserTenantOut:
        """Create a tenant and make the caller its owner.

        Args:
            name: Display name of the new tenant

        Returns:
            The tenant with the caller's role

        Raises:
            ConflictError: If no free slug could be generated
        """
        for _ in range(SLUG_ATTEMPTS):
            slug = generate_slug()
            if not await self._slug_taken(slug):
                break
        else:
            raise ConflictError("Could not allocate a unique tenant slug")

        tenant = Tenant(slug=slug, name=name)
        self.session.add(tenant)
        await self.session.flush()

        self.session.add(
            TenantUser(
                tenant_id=tenant.tenant_id,
                user_id=self.user_id,
                role=Role.owner.value,
                status=MembershipStatus.active.value,
            )
        )
        await self.session.flush()

        return UserTenantOut(**TenantOut.model_validate(tenant).model_dump(), role=Role.owner)

    async def list_user_tenants(self) -> list[UserTenantOut]:
        """List tenants where the caller holds an active membership."""
        result = await self.session.execute(
            select(Tenant, TenantUser.role)
            .join(TenantUser, TenantUser.tenant_id == Tenant.tenant_id)
            .where(
                TenantUser.user_id == self.user_id,
                TenantUser.status == MembershipStatus.active.value,
            )
            .order_by(Tenant.created_at)
        )
        return [
            UserTenantOut(**TenantOut.model_validate(tenant).model_dump(), role=Role(role))
            for tenant, role in result.all()
        ]

    async def _load(self) -> Tenant:
        tenant = await self.session.get(Tenant, self.tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found")
        return tenant

    async def get_tenant(self) -> TenantOut:
        self.require("read", "Insufficient permissions to read tenant")
        return TenantOut.model_validate(await self._load())

    async def update_tenant(self, name: str | None = None) -> TenantOut:
        """Rename the tenant. Owners only.

        Raises:
            AuthorizationError: If the caller lacks update_tenant or is not an owner
        """
        self.require("update_tenant", "Insufficient permissions to update tenant")
        self.require_role(Role.owner, message="Only tenant owners can update tenant settings")

        tenant = await self._load()
        if name is not None:
            tenant.name = name
        await self.session.flush()
        return TenantOut.model_validate(tenant)

    async def delete_tenant(self) -> None:
        """Delete the tenant and everything it owns. Owners only."""
        self.require("delete_tenant", "Insufficient permissions to delete tenant")
        self.require_role(Role.owner, message="Only tenant owners can delete the tenant")

        await self._load()
        await self.session.execute(delete(TenantUser).where(TenantUser.tenant_id == self.tenant_id))
        await self.session.execute(delete(Tenant).where(Tenant.tenant_id == self.tenant_id))
