"""Member profile endpoints - /api/tenants/{tenantSlug}/member-profiles."""

import uuid
from typing import Any, cast

from backend.app.api.service import HandlerSpec, ServiceRouter, TenantApiService
from backend.app.api.validation import NoInput
from backend.app.db.context import RequestContext
from backend.app.models.common import CamelModel
from backend.app.services.base import PermissionContext
from backend.app.services.member_profiles import MemberProfileService

router = ServiceRouter(prefix="/api/tenants", tags=["member-profiles"])


class CreateMemberProfileRequest(CamelModel):
    tenant_user_id: uuid.UUID


class MemberProfilePath(CamelModel):
    member_profile_id: uuid.UUID


def _service(ctx: RequestContext) -> MemberProfileService:
    return MemberProfileService(ctx.session, PermissionContext.from_request(ctx))


async def list_members(ctx: RequestContext) -> dict[str, Any]:
    return {"members": await _service(ctx).list_members_with_status()}


async def create_profile(ctx: RequestContext) -> dict[str, Any]:
    data = cast(CreateMemberProfileRequest, ctx.data)
    return {"profile": await _service(ctx).create_member_profile(data.tenant_user_id)}


async def delete_profile(ctx: RequestContext) -> dict[str, str]:
    data = cast(MemberProfilePath, ctx.data)
    await _service(ctx).delete_member_profile(data.member_profile_id)
    return {"message": "Member profile deleted"}


profiles_service = TenantApiService(
    {
        "GET": HandlerSpec(NoInput, list_members, summary="List members and profile status"),
        "POST": HandlerSpec(
            CreateMemberProfileRequest,
            create_profile,
            status_code=201,
            summary="Create a member profile",
        ),
    }
)
profile_service = TenantApiService(
    {
        "DELETE": HandlerSpec(MemberProfilePath, delete_profile, summary="Delete a member profile"),
    }
)

profiles_service.mount(router, "/{tenantSlug}/member-profiles")
profile_service.mount(router, "/{tenantSlug}/member-profiles/{memberProfileId}")
