"""Per-request context assembled by the request dispatcher."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.common import Role

if TYPE_CHECKING:
    from backend.app.dependencies import AppDependencies


@dataclass(frozen=True)
class Principal:
    """The authenticated caller.

    auth_type is "session" for cookie/bearer sessions and "api_key" for
    programmatic v1 access, in which case api_key_id, api_key_tenant_id and
    scopes describe the key.
    """

    user_id: UUID
    email: str
    auth_type: str = "session"
    api_key_id: UUID | None = None
    api_key_tenant_id: UUID | None = None
    scopes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_api_key(self) -> bool:
        return self.auth_type == "api_key"


@dataclass(frozen=True)
class TenantScope:
    """Resolved tenant and the caller's role in it.

    role is None only when the handler did not ask for role resolution.
    """

    tenant_id: UUID
    slug: str
    role: Role | None = None


@dataclass(frozen=True)
class RequestContext:
    """Request context handed to handlers.

    Owned by the single request being processed and discarded with it.
    """

    data: BaseModel
    session: AsyncSession
    deps: "AppDependencies"
    principal: Principal | None = None
    tenant: TenantScope | None = None
    path_params: dict[str, Any] = field(default_factory=dict)

    def require_principal(self) -> Principal:
        if self.principal is None:
            raise RuntimeError("handler requires an authenticated principal")
        return self.principal

    def require_tenant(self) -> TenantScope:
        if self.tenant is None:
            raise RuntimeError("handler requires a resolved tenant")
        return self.tenant
