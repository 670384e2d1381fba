"""Tenant endpoints - /api/tenants/{tenantSlug}, settings and members."""

import uuid
from typing import Any, cast

from pydantic import EmailStr, Field

from backend.app.api.errors import BadRequestError
from backend.app.api.service import HandlerSpec, ServiceRouter, TenantApiService
from backend.app.api.validation import NoInput
from backend.app.db.context import RequestContext
from backend.app.models.common import CamelModel, MembershipStatus, Role
from backend.app.services.base import PermissionContext
from backend.app.services.invitations import InvitationService
from backend.app.services.tenant_users import TenantUserService
from backend.app.services.tenants import TenantService

router = ServiceRouter(prefix="/api/tenants", tags=["tenants"])


class UpdateTenantRequest(CamelModel):
    """Request body for PATCH /api/tenants/{tenantSlug}."""

    name: str = Field(..., min_length=1, max_length=200)


class InviteUserRequest(CamelModel):
    """Request body for POST /api/tenants/{tenantSlug}/users."""

    email: EmailStr
    role: Role
    message: str | None = Field(None, max_length=2000)


class TenantUserPath(CamelModel):
    user_id: uuid.UUID


class UpdateTenantUserRequest(TenantUserPath):
    """Request body for PATCH /api/tenants/{tenantSlug}/users/{userId}."""

    role: Role | None = None
    status: MembershipStatus | None = None
    permissions: dict[str, Any] | None = None


def _tenants(ctx: RequestContext) -> TenantService:
    return TenantService(ctx.session, PermissionContext.from_request(ctx))


def _members(ctx: RequestContext) -> TenantUserService:
    return TenantUserService(ctx.session, PermissionContext.from_request(ctx))


async def get_tenant(ctx: RequestContext) -> Any:
    return await _tenants(ctx).get_tenant()


async def update_tenant(ctx: RequestContext) -> Any:
    data = cast(UpdateTenantRequest, ctx.data)
    return await _tenants(ctx).update_tenant(name=data.name)


async def delete_tenant(ctx: RequestContext) -> dict[str, str]:
    await _tenants(ctx).delete_tenant()
    return {"message": "Tenant deleted successfully"}


async def list_users(ctx: RequestContext) -> dict[str, Any]:
    service = _members(ctx)
    return {
        "users": await service.list_tenant_users(),
        "stats": await service.get_user_stats(),
    }


async def invite_user(ctx: RequestContext) -> dict[str, Any]:
    data = cast(InviteUserRequest, ctx.data)
    settings = ctx.deps.settings
    service = InvitationService(
        ctx.session,
        PermissionContext.from_request(ctx),
        site_url=settings.site_url,
        ttl_days=settings.invitation_ttl_days,
    )
    invitation = await service.send_invitation(data.email, data.role, data.message)
    return {"invitation": invitation, "message": f"Invitation sent to {invitation.email}"}


async def get_user(ctx: RequestContext) -> Any:
    data = cast(TenantUserPath, ctx.data)
    return await _members(ctx).get_tenant_user(data.user_id)


async def update_user(ctx: RequestContext) -> dict[str, Any]:
    data = cast(UpdateTenantUserRequest, ctx.data)
    if data.permissions is not None:
        raise BadRequestError("Custom permissions are not supported")

    service = _members(ctx)
    if data.role is not None:
        await service.update_role(data.user_id, data.role)
    if data.status is not None:
        await service.update_status(data.user_id, data.status)

    user = await service.get_tenant_user(data.user_id)
    return {"user": user, "message": "User updated successfully"}


async def remove_user(ctx: RequestContext) -> dict[str, str]:
    data = cast(TenantUserPath, ctx.data)
    await _members(ctx).remove_user(data.user_id)
    return {"message": "User removed from tenant successfully"}


tenant_service = TenantApiService(
    {
        "GET": HandlerSpec(NoInput, get_tenant, summary="Get the tenant"),
        "PATCH": HandlerSpec(UpdateTenantRequest, update_tenant, summary="Rename the tenant"),
        "DELETE": HandlerSpec(NoInput, delete_tenant, summary="Delete the tenant"),
    }
)
settings_general_service = TenantApiService(
    {
        "PATCH": HandlerSpec(
            UpdateTenantRequest, update_tenant, summary="Update general tenant settings"
        ),
    }
)
users_service = TenantApiService(
    {
        "GET": HandlerSpec(NoInput, list_users, summary="List members with statistics"),
        "POST": HandlerSpec(
            InviteUserRequest, invite_user, status_code=201, summary="Invite a user"
        ),
    }
)
user_service = TenantApiService(
    {
        "GET": HandlerSpec(TenantUserPath, get_user, summary="Get a member"),
        "PATCH": HandlerSpec(
            UpdateTenantUserRequest, update_user, summary="Change a member's role or status"
        ),
        "DELETE": HandlerSpec(TenantUserPath, remove_user, summary="Remove a member"),
    }
)

tenant_service.mount(router, "/{tenantSlug}")
settings_general_service.mount(router, "/{tenantSlug}/settings-general")
users_service.mount(router, "/{tenantSlug}/users")
user_service.mount(router, "/{tenantSlug}/users/{userId}")
