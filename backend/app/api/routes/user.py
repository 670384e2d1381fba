"""User-scoped endpoints - /api/user/profile and /api/user/tenants."""

from typing import Any, cast

from pydantic import Field, HttpUrl

from backend.app.api.service import HandlerSpec, ServiceRouter, UserApiService
from backend.app.api.validation import NoInput
from backend.app.db.context import RequestContext
from backend.app.models.common import CamelModel
from backend.app.services.base import PermissionContext
from backend.app.services.tenants import TenantService
from backend.app.services.user_profiles import UserProfileService

router = ServiceRouter(prefix="/api/user", tags=["user"])


class UpdateProfileRequest(CamelModel):
    """Request body for PATCH /api/user/profile. Omitted fields are left unchanged."""

    display_name: str | None = Field(None, max_length=200)
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=50)
    timezone: str | None = Field(None, min_length=1, max_length=64)
    avatar_url: HttpUrl | None = None
    preferences: dict[str, Any] | None = None


class CreateTenantRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)


async def get_profile(ctx: RequestContext) -> Any:
    return await UserProfileService(ctx.session, PermissionContext.from_request(ctx)).get_profile()


async def update_profile(ctx: RequestContext) -> Any:
    data = cast(UpdateProfileRequest, ctx.data)
    updates = data.model_dump(exclude_unset=True, exclude={"preferences"}, mode="json")
    updates["preferences"] = data.preferences
    service = UserProfileService(ctx.session, PermissionContext.from_request(ctx))
    return await service.update_profile(updates)


async def list_tenants(ctx: RequestContext) -> Any:
    return await TenantService(ctx.session, PermissionContext.from_request(ctx)).list_user_tenants()


async def create_tenant(ctx: RequestContext) -> Any:
    data = cast(CreateTenantRequest, ctx.data)
    service = TenantService(ctx.session, PermissionContext.from_request(ctx))
    return await service.create_tenant_with_owner(data.name)


profile_service = UserApiService(
    {
        "GET": HandlerSpec(NoInput, get_profile, summary="Get the caller's profile"),
        "PATCH": HandlerSpec(
            UpdateProfileRequest, update_profile, summary="Update the caller's profile"
        ),
    }
)
tenants_service = UserApiService(
    {
        "GET": HandlerSpec(NoInput, list_tenants, summary="List the caller's tenants"),
        "POST": HandlerSpec(
            CreateTenantRequest, create_tenant, status_code=201, summary="Create a tenant"
        ),
    }
)

profile_service.mount(router, "/profile")
tenants_service.mount(router, "/tenants")
