"""Integration endpoints - /api/tenants/{tenantSlug}/integrations."""

from typing import Any, cast

from backend.app.api.service import HandlerSpec, ServiceRouter, TenantApiService
from backend.app.api.validation import NoInput
from backend.app.db.context import RequestContext
from backend.app.models.common import CamelModel, IntegrationMethod, IntegrationProvider
from backend.app.services.base import PermissionContext
from backend.app.services.integrations import IntegrationService

router = ServiceRouter(prefix="/api/tenants", tags=["integrations"])


class ProviderRequest(CamelModel):
    provider: IntegrationProvider
    method: IntegrationMethod


class CallbackRequest(ProviderRequest):
    """Request body for POST /api/tenants/{tenantSlug}/integrations/callback."""

    provider_account_id: str
    connection_data: dict[str, Any] | None = None


def _service(ctx: RequestContext) -> IntegrationService:
    return IntegrationService(ctx.session, PermissionContext.from_request(ctx), ctx.deps.adapters)


async def list_integrations(ctx: RequestContext) -> dict[str, Any]:
    service = _service(ctx)
    return {
        "connections": await service.list_connections(),
        "available": service.available_providers(),
    }


async def connect(ctx: RequestContext) -> Any:
    data = cast(ProviderRequest, ctx.data)
    return await _service(ctx).connect(data.provider, data.method)


async def callback(ctx: RequestContext) -> Any:
    data = cast(CallbackRequest, ctx.data)
    return await _service(ctx).finalize_connection(
        data.provider, data.method, data.provider_account_id, data.connection_data
    )


async def disconnect(ctx: RequestContext) -> dict[str, str]:
    data = cast(ProviderRequest, ctx.data)
    await _service(ctx).disconnect(data.provider, data.method)
    return {"message": "Integration disconnected"}


integrations_service = TenantApiService(
    {
        "GET": HandlerSpec(NoInput, list_integrations, summary="List the caller's connections"),
        "POST": HandlerSpec(ProviderRequest, connect, summary="Start a provider connection"),
    }
)
callback_service = TenantApiService(
    {
        "POST": HandlerSpec(CallbackRequest, callback, summary="Finalize a provider connection"),
    }
)
disconnect_service = TenantApiService(
    {
        "POST": HandlerSpec(ProviderRequest, disconnect, summary="Disconnect a provider"),
    }
)

integrations_service.mount(router, "/{tenantSlug}/integrations")
callback_service.mount(router, "/{tenantSlug}/integrations/callback")
disconnect_service.mount(router, "/{tenantSlug}/integrations/disconnect")
