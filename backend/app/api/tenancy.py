"""Tenant and role resolution for tenant-scoped requests."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.errors import AuthorizationError, NotFoundError
from backend.app.db.models import Tenant, TenantUser
from backend.app.models.common import MembershipStatus, Role


async def get_active_membership(
    session: AsyncSession, tenant_id: uuid.UUID, user_id: uuid.UUID
) -> TenantUser | None:
    """Load the caller's active membership, if any. Never cached."""
    result = await session.execute(
        select(TenantUser).where(
            TenantUser.tenant_id == tenant_id,
            TenantUser.user_id == user_id,
            TenantUser.status == MembershipStatus.active.value,
        )
    )
    return result.scalar_one_or_none()


async def get_tenant_by_slug(session: AsyncSession, slug: str) -> Tenant | None:
    result = await session.execute(select(Tenant).where(Tenant.slug == slug))
    return result.scalar_one_or_none()


async def resolve_tenant(session: AsyncSession, slug: str, user_id: uuid.UUID) -> Tenant:
    """Map a tenant slug to a tenant the caller belongs to.

    Args:
        session: Database session
        slug: Tenant slug from the path, header or query
        user_id: Resolved principal id

    Returns:
        The Tenant row

    Raises:
        NotFoundError: If no tenant has this slug
        AuthorizationError: If the caller has no active membership
    """
    tenant = await get_tenant_by_slug(session, slug)
    if tenant is None:
        raise NotFoundError("Tenant not found")

    if await get_active_membership(session, tenant.tenant_id, user_id) is None:
        raise AuthorizationError("You do not have access to this tenant")
    return tenant


async def resolve_role(session: AsyncSession, tenant_id: uuid.UUID, user_id: uuid.UUID) -> Role:
    """Look up the caller's role in a tenant.

    There is no fallback: a missing role is an authorization failure.

    Raises:
        AuthorizationError: If the caller holds no active role in the tenant
    """
    membership = await get_active_membership(session, tenant_id, user_id)
    if membership is None:
        raise AuthorizationError("No role in this tenant")
    return Role(membership.role)
