"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from backend.app.api.routes.api_keys import router as api_keys_router
from backend.app.api.routes.docs import router as docs_router
from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.integrations import router as integrations_router
from backend.app.api.routes.invitations import router as invitations_router
from backend.app.api.routes.member_profiles import router as member_profiles_router
from backend.app.api.routes.metrics import router as metrics_router
from backend.app.api.routes.tenants import router as tenants_router
from backend.app.api.routes.user import router as user_router
from backend.app.api.routes.v1_companies import router as v1_companies_router
from backend.app.api.routes.v1_people import router as v1_people_router
from backend.app.api.service import collect_services
from backend.app.config import Settings, get_settings
from backend.app.db.engine import create_async_engine_from_settings
from backend.app.dependencies import build_dependencies
from backend.app.integrations.base import AdapterRegistry
from backend.app.utils.logging import configure_logging

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

API_ROUTERS = (
    user_router,
    tenants_router,
    invitations_router,
    api_keys_router,
    integrations_router,
    member_profiles_router,
    v1_people_router,
    v1_companies_router,
)


def create_app(
    settings: Settings | None = None,
    *,
    engine: AsyncEngine | None = None,
    http_client: httpx.AsyncClient | None = None,
    adapters: AdapterRegistry | None = None,
) -> FastAPI:
    """Build the application.

    The engine and http client are created on startup unless passed in;
    whatever is created here is also disposed here. Passing all of them
    (as tests do) wires dependencies immediately, without waiting for the
    lifespan to run.

    Args:
        settings: Settings to use; defaults to get_settings()
        engine: Pre-built async engine
        http_client: Pre-built provider http client
        adapters: Pre-built adapter registry

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        if getattr(app.state, "deps", None) is not None:
            yield
            return

        own_engine = engine or create_async_engine_from_settings(settings)
        own_client = http_client or httpx.AsyncClient(timeout=settings.provider_timeout_seconds)
        app.state.deps = build_dependencies(settings, own_engine, own_client, adapters)
        logger.info("Application started")
        try:
            yield
        finally:
            if http_client is None:
                await own_client.aclose()
            if engine is None:
                await own_engine.dispose()
            logger.info("Application stopped")

    app = FastAPI(title="CRM API", version=API_VERSION, lifespan=lifespan)
    app.state.deps = None
    if engine is not None and http_client is not None:
        app.state.deps = build_dependencies(settings, engine, http_client, adapters)

    # Register routes
    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(docs_router)
    for router in API_ROUTERS:
        app.include_router(router)
    app.state.api_services = collect_services(API_ROUTERS)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "CRM API", "version": API_VERSION}

    return app


app = create_app()
