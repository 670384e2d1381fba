"""API key endpoints - /api/tenants/{tenantSlug}/api-keys."""

import uuid
from datetime import datetime, timezone
from typing import Any, Literal, cast

from pydantic import Field, field_validator

from backend.app.api.service import HandlerSpec, ServiceRouter, TenantApiService
from backend.app.api.validation import NoInput
from backend.app.db.context import RequestContext
from backend.app.models.common import CamelModel
from backend.app.services.api_keys import ApiKeyService
from backend.app.services.base import PermissionContext

router = ServiceRouter(prefix="/api/tenants", tags=["api-keys"])


class CreateApiKeyRequest(CamelModel):
    """Request body for POST /api/tenants/{tenantSlug}/api-keys."""

    name: str = Field(..., min_length=1, max_length=200)
    scopes: list[str] | None = None
    expires_at: datetime | None = None

    @field_validator("expires_at")
    @classmethod
    def _naive_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class ApiKeyPath(CamelModel):
    key_id: uuid.UUID


class RevokeApiKeyRequest(ApiKeyPath):
    action: Literal["revoke"]


def _service(ctx: RequestContext) -> ApiKeyService:
    return ApiKeyService(ctx.session, PermissionContext.from_request(ctx))


async def list_keys(ctx: RequestContext) -> dict[str, Any]:
    return {"keys": await _service(ctx).list_keys()}


async def create_key(ctx: RequestContext) -> dict[str, Any]:
    data = cast(CreateApiKeyRequest, ctx.data)
    created = await _service(ctx).create_key(data.name, data.scopes, data.expires_at)
    return {
        "key": created,
        "message": "API key created. Copy the key now, it will not be shown again.",
    }


async def revoke_key(ctx: RequestContext) -> dict[str, str]:
    data = cast(ApiKeyPath, ctx.data)
    await _service(ctx).revoke_key(data.key_id)
    return {"message": "API key revoked"}


keys_service = TenantApiService(
    {
        "GET": HandlerSpec(NoInput, list_keys, summary="List API keys"),
        "POST": HandlerSpec(
            CreateApiKeyRequest, create_key, status_code=201, summary="Create an API key"
        ),
    }
)
key_service = TenantApiService(
    {
        "POST": HandlerSpec(RevokeApiKeyRequest, revoke_key, summary="Revoke an API key"),
        "DELETE": HandlerSpec(ApiKeyPath, revoke_key, summary="Revoke an API key"),
    }
)

keys_service.mount(router, "/{tenantSlug}/api-keys")
key_service.mount(router, "/{tenantSlug}/api-keys/{keyId}")
