"""Invitation endpoints.

Tenant side: /api/tenants/{tenantSlug}/invitations. Invitee side:
/api/invitations/accept (signed-in user) and /api/invitations/decline
(authorized by the token alone).
"""

import uuid
from typing import Any, Literal, cast

from pydantic import EmailStr, Field

from backend.app.api.service import (
    HandlerSpec,
    ServiceRouter,
    TenantApiService,
    TokenApiService,
    UserApiService,
)
from backend.app.api.validation import NoInput
from backend.app.db.context import RequestContext
from backend.app.models.common import CamelModel, Role
from backend.app.services.base import PermissionContext
from backend.app.services.invitations import InvitationRedemption, InvitationService

router = ServiceRouter(tags=["invitations"])


class SendInvitationRequest(CamelModel):
    """Request body for POST /api/tenants/{tenantSlug}/invitations."""

    email: EmailStr
    role: Role
    message: str | None = Field(None, max_length=2000)


class InvitationPath(CamelModel):
    invitation_id: uuid.UUID


class InvitationActionRequest(InvitationPath):
    action: Literal["resend"]


class TokenRequest(CamelModel):
    token: str = Field(..., min_length=1)


def _service(ctx: RequestContext) -> InvitationService:
    settings = ctx.deps.settings
    return InvitationService(
        ctx.session,
        PermissionContext.from_request(ctx),
        site_url=settings.site_url,
        ttl_days=settings.invitation_ttl_days,
    )


async def list_invitations(ctx: RequestContext) -> dict[str, Any]:
    service = _service(ctx)
    return {
        "invitations": await service.list_invitations(),
        "stats": await service.get_invitation_stats(),
    }


async def send_invitation(ctx: RequestContext) -> dict[str, Any]:
    data = cast(SendInvitationRequest, ctx.data)
    invitation = await _service(ctx).send_invitation(data.email, data.role, data.message)
    return {"invitation": invitation, "message": f"Invitation sent to {invitation.email}"}


async def resend_invitation(ctx: RequestContext) -> dict[str, Any]:
    data = cast(InvitationActionRequest, ctx.data)
    invitation = await _service(ctx).resend_invitation(data.invitation_id)
    return {"invitation": invitation, "message": "Invitation resent successfully"}


async def cancel_invitation(ctx: RequestContext) -> dict[str, str]:
    data = cast(InvitationPath, ctx.data)
    await _service(ctx).cancel_invitation(data.invitation_id)
    return {"message": "Invitation canceled successfully"}


async def preview_invitation(ctx: RequestContext) -> dict[str, Any]:
    data = cast(TokenRequest, ctx.data)
    return {"invitation": await InvitationRedemption(ctx.session).preview(data.token)}


async def accept_invitation(ctx: RequestContext) -> dict[str, Any]:
    data = cast(TokenRequest, ctx.data)
    principal = ctx.require_principal()
    accepted = await InvitationRedemption(ctx.session).accept(data.token, principal.user_id)
    return {"membership": accepted, "message": "Invitation accepted successfully"}


async def decline_invitation(ctx: RequestContext) -> dict[str, str]:
    data = cast(TokenRequest, ctx.data)
    await InvitationRedemption(ctx.session).decline(data.token)
    return {"message": "Invitation declined successfully"}


invitations_service = TenantApiService(
    {
        "GET": HandlerSpec(NoInput, list_invitations, summary="List invitations with statistics"),
        "POST": HandlerSpec(
            SendInvitationRequest, send_invitation, status_code=201, summary="Send an invitation"
        ),
    }
)
invitation_service = TenantApiService(
    {
        "POST": HandlerSpec(
            InvitationActionRequest, resend_invitation, summary="Resend a pending invitation"
        ),
        "DELETE": HandlerSpec(InvitationPath, cancel_invitation, summary="Cancel an invitation"),
    }
)
accept_service = UserApiService(
    {
        "GET": HandlerSpec(TokenRequest, preview_invitation, summary="Preview an invitation"),
        "POST": HandlerSpec(TokenRequest, accept_invitation, summary="Accept an invitation"),
    }
)
decline_service = TokenApiService(
    {
        "POST": HandlerSpec(TokenRequest, decline_invitation, summary="Decline an invitation"),
    }
)

invitations_service.mount(router, "/api/tenants/{tenantSlug}/invitations")
invitation_service.mount(router, "/api/tenants/{tenantSlug}/invitations/{invitationId}")
accept_service.mount(router, "/api/invitations/accept")
decline_service.mount(router, "/api/invitations/decline")
