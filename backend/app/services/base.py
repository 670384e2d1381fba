"""Permission context and the base class for tenant-scoped domain services."""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.errors import AuthorizationError
from backend.app.db.context import RequestContext
from backend.app.models.common import Role

# Admins hold every permission except these
OWNER_ONLY_PERMISSIONS = frozenset({"delete_tenant", "transfer_ownership"})
MEMBER_PERMISSIONS = frozenset({"read", "create", "update_own"})
VIEWER_PERMISSIONS = frozenset({"read"})


@dataclass(frozen=True)
class PermissionContext:
    """Caller identity plus tenant and role, as seen by a domain service."""

    user_id: UUID
    tenant_id: UUID | None = None
    role: Role | None = None

    @classmethod
    def from_request(cls, ctx: RequestContext) -> "PermissionContext":
        principal = ctx.require_principal()
        if ctx.tenant is None:
            return cls(user_id=principal.user_id)
        return cls(user_id=principal.user_id, tenant_id=ctx.tenant.tenant_id, role=ctx.tenant.role)


def role_has_permission(role: Role | str | None, permission: str) -> bool:
    """Evaluate the role permission matrix.

    A missing role grants nothing.

    Args:
        role: Caller's role in the tenant
        permission: Permission name, e.g. "manage_users"

    Returns:
        True if the permission is granted
    """
    if role is None:
        return False

    role = Role(role)
    if role == Role.owner:
        return True
    if role == Role.admin:
        return permission not in OWNER_ONLY_PERMISSIONS
    if role == Role.member:
        return permission in MEMBER_PERMISSIONS
    return permission in VIEWER_PERMISSIONS


class BaseEntityService:
    """Base for services that re-check authorization on every operation."""

    def __init__(self, session: AsyncSession, permission_context: PermissionContext) -> None:
        self.session = session
        self.permission_context = permission_context

    @property
    def user_id(self) -> UUID:
        return self.permission_context.user_id

    @property
    def tenant_id(self) -> UUID:
        tenant_id = self.permission_context.tenant_id
        if tenant_id is None:
            raise RuntimeError(f"{type(self).__name__} requires a tenant context")
        return tenant_id

    @property
    def role(self) -> Role | None:
        return self.permission_context.role

    def has_permission(self, permission: str) -> bool:
        return role_has_permission(self.permission_context.role, permission)

    def require(self, permission: str, message: str | None = None) -> None:
        """Raise AuthorizationError unless the caller holds the permission."""
        if not self.has_permission(permission):
            raise AuthorizationError(message or f"Insufficient permissions: {permission} required")

    def require_role(self, *roles: Role, message: str | None = None) -> None:
        """Raise AuthorizationError unless the caller holds one of the roles."""
        if self.permission_context.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            raise AuthorizationError(message or f"Requires role: {allowed}")
