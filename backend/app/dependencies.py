"""Process-wide collaborators, built once at startup and injected per request."""

import logging
from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from backend.app.config import Settings
from backend.app.db.engine import create_session_factory
from backend.app.integrations.base import AdapterRegistry
from backend.app.integrations.pipedream import GmailPipedreamAdapter, PipedreamClient

logger = logging.getLogger(__name__)


@dataclass
class AppDependencies:
    """Everything a handler may need beyond its request context.

    Stored on app.state.deps by create_app(); lifecycle is owned by the
    application lifespan, never by request code.
    """

    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    http_client: httpx.AsyncClient
    adapters: AdapterRegistry


def build_adapter_registry(settings: Settings, http_client: httpx.AsyncClient) -> AdapterRegistry:
    """Register every adapter whose provider is configured."""
    registry = AdapterRegistry()

    if settings.pipedream_client_id and settings.pipedream_project_id:
        client = PipedreamClient.from_settings(http_client, settings)
        registry.register(
            GmailPipedreamAdapter(
                client,
                site_url=settings.site_url,
                ingestor_endpoint=settings.ingestor_endpoint_gmail,
            )
        )
    else:
        logger.info("Pipedream not configured; Gmail integration disabled")

    return registry


def build_dependencies(
    settings: Settings,
    engine: AsyncEngine,
    http_client: httpx.AsyncClient,
    adapters: AdapterRegistry | None = None,
) -> AppDependencies:
    """Assemble AppDependencies from an engine and http client owned by the caller."""
    return AppDependencies(
        settings=settings,
        session_factory=create_session_factory(engine),
        http_client=http_client,
        adapters=adapters if adapters is not None else build_adapter_registry(settings, http_client),
    )
