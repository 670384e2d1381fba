"""Request dispatcher - the single entry point for every API endpoint.

An endpoint is a static handler table mapping HTTP methods to a
(schema, handler) pair, verified when the service is constructed. Each
request runs through a strict pipeline:

1. select the handler for the method (405 with Allow otherwise)
2. validate input against the method's schema (400)
3. authenticate (401)
4. resolve tenant and role where the endpoint family is tenant-scoped
   (404 unknown tenant, 403 no membership or no role)
5. run the handler
6. serialize the result into the success envelope
7. map typed errors to their status; anything else becomes a generic 500

Handlers never build HTTP responses themselves.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.auth import resolve_principal
from backend.app.api.errors import (
    ApiError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    MethodNotAllowedError,
    UnexpectedError,
    ValidationError,
    error_response,
    success_response,
)
from backend.app.api.tenancy import resolve_role, resolve_tenant
from backend.app.api.validation import collect_raw_data, validate_data
from backend.app.db.context import Principal, RequestContext, TenantScope
from backend.app.db.models import Tenant
from backend.app.dependencies import AppDependencies
from backend.app.services.scopes import scopes_include
from backend.app.utils.logging import StructuredRequestLogger
from backend.app.utils.metrics import PrometheusRequestMetrics

logger = logging.getLogger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

Handler = Callable[[RequestContext], Awaitable[Any]]


@dataclass(frozen=True)
class HandlerSpec:
    """One row of a handler table.

    Attributes:
        schema: Pydantic model the raw input is validated against
        handler: Coroutine receiving the assembled RequestContext
        required_scope: Scope an API key must hold (v1 family only)
        resolve_role: Whether the caller's role must be resolved
        status_code: HTTP status of a successful response
        summary: One-line description for the generated API docs
    """

    schema: type[BaseModel]
    handler: Handler
    required_scope: str | None = None
    resolve_role: bool = True
    status_code: int = 200
    summary: str | None = None


class ServiceRouter(APIRouter):
    """APIRouter that remembers the dispatchers mounted on it."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.services: list[ApiService] = []


def collect_services(routers: Iterable[APIRouter]) -> list["ApiService"]:
    """List the dispatchers mounted on the given routers, in mount order."""
    services: list[ApiService] = []
    for router in routers:
        if isinstance(router, ServiceRouter):
            services.extend(router.services)
    return services


class ApiService:
    """Base dispatcher. Subclasses decide how callers and tenants resolve."""

    family = "base"

    def __init__(self, handlers: Mapping[str, HandlerSpec]) -> None:
        """Build a dispatcher from a handler table.

        Raises:
            ValueError: If the table is empty, names an unknown HTTP method,
                or an entry lacks a pydantic schema or a callable handler.
        """
        if not handlers:
            raise ValueError("handler table must declare at least one method")

        table: dict[str, HandlerSpec] = {}
        for method, spec in handlers.items():
            method = method.upper()
            if method not in HTTP_METHODS:
                raise ValueError(f"unsupported HTTP method in handler table: {method}")
            if not isinstance(spec, HandlerSpec):
                raise ValueError(f"{method}: expected HandlerSpec, got {type(spec).__name__}")
            if not (isinstance(spec.schema, type) and issubclass(spec.schema, BaseModel)):
                raise ValueError(f"{method}: schema must be a pydantic model")
            if not callable(spec.handler):
                raise ValueError(f"{method}: handler must be callable")
            table[method] = spec

        self.handlers: Mapping[str, HandlerSpec] = MappingProxyType(table)
        self.path = "<unmounted>"
        self._request_logger = StructuredRequestLogger()
        self._metrics = PrometheusRequestMetrics()

    @property
    def allowed_methods(self) -> list[str]:
        return [m for m in HTTP_METHODS if m in self.handlers]

    def mount(self, router: ServiceRouter, path: str, **kwargs: Any) -> None:
        """Register this dispatcher on a router for every HTTP method.

        All methods are routed here so that undeclared ones get the 405
        envelope with an exact Allow header. The router records the
        dispatcher so the app can enumerate it without walking routes.
        """
        self.path = (router.prefix or "") + path
        router.services.append(self)
        router.add_api_route(
            path,
            self.run,
            methods=list(HTTP_METHODS),
            response_model=None,
            include_in_schema=False,
            **kwargs,
        )

    async def authenticate(
        self, request: Request, session: AsyncSession, deps: AppDependencies
    ) -> Principal | None:
        return await resolve_principal(request, session, deps.settings)

    async def resolve_scope(
        self,
        request: Request,
        session: AsyncSession,
        principal: Principal | None,
        spec: HandlerSpec,
    ) -> TenantScope | None:
        return None

    async def run(self, request: Request) -> JSONResponse:
        """Dispatch one request through the pipeline and write one response."""
        start = time.perf_counter()
        method = request.method.upper()
        principal: Principal | None = None
        tenant: TenantScope | None = None
        error_code: str | None = None

        try:
            spec = self.handlers.get(method)
            if spec is None:
                raise MethodNotAllowedError(method, self.allowed_methods)

            data = validate_data(spec.schema, await collect_raw_data(request))

            deps: AppDependencies = request.app.state.deps
            async with deps.session_factory() as session:
                try:
                    principal = await self.authenticate(request, session, deps)
                    tenant = await self.resolve_scope(request, session, principal, spec)
                    ctx = RequestContext(
                        data=data,
                        session=session,
                        deps=deps,
                        principal=principal,
                        tenant=tenant,
                        path_params=dict(request.path_params),
                    )
                    result = await spec.handler(ctx)
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

            response = success_response(jsonable_encoder(result), spec.status_code)
        except ApiError as e:
            error_code = e.code
            response = error_response(e)
        except IntegrityError as e:
            logger.warning(
                "Constraint violation on %s %s: %s", method, self.path, type(e.orig).__name__
            )
            conflict = ConflictError("Resource conflicts with existing data")
            error_code = conflict.code
            response = error_response(conflict)
        except Exception:
            logger.exception("Unhandled error on %s %s", method, self.path)
            unexpected = UnexpectedError()
            error_code = unexpected.code
            response = error_response(unexpected)

        latency_ms = (time.perf_counter() - start) * 1000
        self._record(method, response.status_code, latency_ms, principal, tenant, error_code)
        return response

    def _record(
        self,
        method: str,
        status_code: int,
        latency_ms: float,
        principal: Principal | None,
        tenant: TenantScope | None,
        error_code: str | None,
    ) -> None:
        self._metrics.record_latency(self.path, method, latency_ms)
        self._metrics.inc_request(self.path, method, status_code)
        if error_code:
            self._metrics.inc_error(self.path, error_code)
        self._request_logger.log_request(
            endpoint=self.path,
            method=method,
            status_code=status_code,
            latency_ms=latency_ms,
            tenant_slug=tenant.slug if tenant else None,
            principal_id=str(principal.user_id) if principal else None,
            auth_type=principal.auth_type if principal else None,
            error_code=error_code,
        )


class TokenApiService(ApiService):
    """Endpoints authorized by a token in the request itself; no principal."""

    family = "token"

    async def authenticate(
        self, request: Request, session: AsyncSession, deps: AppDependencies
    ) -> Principal | None:
        return None


class UserApiService(ApiService):
    """User-scoped endpoints under /api/user: session auth, no tenant."""

    family = "user"


class TenantApiService(ApiService):
    """Tenant-scoped endpoints under /api/tenants/{tenantSlug}."""

    family = "tenant"
    slug_param = "tenantSlug"

    async def resolve_scope(
        self,
        request: Request,
        session: AsyncSession,
        principal: Principal | None,
        spec: HandlerSpec,
    ) -> TenantScope | None:
        if principal is None:
            raise AuthenticationError()
        slug = request.path_params.get(self.slug_param)
        if not slug:
            raise ValidationError(
                "Tenant slug is required",
                details=[{"field": self.slug_param, "message": "Field required", "type": "missing"}],
            )

        tenant = await resolve_tenant(session, slug, principal.user_id)
        role = await resolve_role(session, tenant.tenant_id, principal.user_id) if spec.resolve_role else None
        return TenantScope(tenant_id=tenant.tenant_id, slug=tenant.slug, role=role)


class V1ApiService(ApiService):
    """Versioned public endpoints under /api/v1.

    The tenant comes from the X-Tenant-Slug header or the tenantSlug query
    parameter. Session callers must be members of it. API-key callers are
    bound to the key's tenant, act with the key creator's current role and
    must hold the handler's required scope.
    """

    family = "v1"
    slug_header = "x-tenant-slug"
    slug_query = "tenantSlug"

    async def authenticate(
        self, request: Request, session: AsyncSession, deps: AppDependencies
    ) -> Principal | None:
        return await resolve_principal(request, session, deps.settings, allow_api_key=True)

    async def resolve_scope(
        self,
        request: Request,
        session: AsyncSession,
        principal: Principal | None,
        spec: HandlerSpec,
    ) -> TenantScope | None:
        if principal is None:
            raise AuthenticationError()
        slug = request.headers.get(self.slug_header) or request.query_params.get(self.slug_query)

        if principal.is_api_key:
            tenant = await session.get(Tenant, principal.api_key_tenant_id)
            if tenant is None:
                raise AuthenticationError("Invalid or expired API key")
            if slug and slug != tenant.slug:
                raise AuthorizationError("API key is not valid for this tenant")
            if spec.required_scope and not scopes_include(principal.scopes, spec.required_scope):
                raise AuthorizationError(f"API key lacks required scope: {spec.required_scope}")
            role = await resolve_role(session, tenant.tenant_id, principal.user_id)
            return TenantScope(tenant_id=tenant.tenant_id, slug=tenant.slug, role=role)

        if not slug:
            raise ValidationError(
                "Tenant is required: send the X-Tenant-Slug header or tenantSlug query parameter",
                details=[{"field": self.slug_query, "message": "Field required", "type": "missing"}],
            )
        tenant = await resolve_tenant(session, slug, principal.user_id)
        role = await resolve_role(session, tenant.tenant_id, principal.user_id) if spec.resolve_role else None
        return TenantScope(tenant_id=tenant.tenant_id, slug=tenant.slug, role=role)
