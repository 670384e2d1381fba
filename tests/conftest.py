"""Shared pytest fixtures for all test suites."""

import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from backend.app.api.auth import issue_session
from backend.app.config import Settings
from backend.app.db.engine import create_session_factory
from backend.app.db.models import Base, Tenant, TenantUser, UserProfile
from backend.app.integrations.base import AdapterRegistry
from backend.app.main import create_app
from backend.app.models.common import MembershipStatus, Role
from backend.app.services.api_keys import ApiKeyService
from backend.app.services.base import PermissionContext


@dataclass
class SeededUser:
    user_id: uuid.UUID
    email: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@dataclass
class SeededTenant:
    tenant_id: uuid.UUID
    slug: str


class Seeder:
    """Writes fixture rows directly, bypassing the API."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def user(self, email: str, display_name: str | None = None) -> SeededUser:
        async with self.session_factory() as session:
            profile = UserProfile(email=email, display_name=display_name)
            session.add(profile)
            await session.flush()
            token = await issue_session(session, profile.user_id)
            await session.commit()
            return SeededUser(user_id=profile.user_id, email=email, token=token)

    async def tenant(self, slug: str, name: str | None = None) -> SeededTenant:
        async with self.session_factory() as session:
            tenant = Tenant(slug=slug, name=name or slug.title())
            session.add(tenant)
            await session.commit()
            return SeededTenant(tenant_id=tenant.tenant_id, slug=tenant.slug)

    async def member(
        self,
        tenant: SeededTenant,
        user: SeededUser,
        role: Role = Role.owner,
        status: MembershipStatus = MembershipStatus.active,
    ) -> uuid.UUID:
        async with self.session_factory() as session:
            membership = TenantUser(
                tenant_id=tenant.tenant_id,
                user_id=user.user_id,
                role=role.value,
                status=status.value,
            )
            session.add(membership)
            await session.commit()
            return membership.tenant_user_id

    async def api_key(
        self, tenant: SeededTenant, creator: SeededUser, scopes: list[str] | None = None
    ) -> str:
        async with self.session_factory() as session:
            service = ApiKeyService(
                session,
                PermissionContext(user_id=creator.user_id, tenant_id=tenant.tenant_id, role=Role.owner),
            )
            created = await service.create_key("fixture key", scopes)
            await session.commit()
            return created.key


def _no_provider_calls(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Unexpected provider call: {request.method} {request.url}")


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite+aiosqlite://", site_url="http://testserver")


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Async engine on a throwaway sqlite file with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def seed(session_factory: async_sessionmaker[AsyncSession]) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def adapters() -> AdapterRegistry:
    """No integrations by default; tests register fakes as needed."""
    return AdapterRegistry()


@pytest_asyncio.fixture
async def provider_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(_no_provider_calls)) as client:
        yield client


@pytest.fixture
def app(
    settings: Settings,
    engine: AsyncEngine,
    provider_client: httpx.AsyncClient,
    adapters: AdapterRegistry,
) -> FastAPI:
    return create_app(settings, engine=engine, http_client=provider_client, adapters=adapters)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client driving the app in-process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@dataclass
class Workspace:
    """A tenant "acme" with one owner."""

    tenant: SeededTenant
    owner: SeededUser

    @property
    def v1_headers(self) -> dict[str, str]:
        return {**self.owner.headers, "X-Tenant-Slug": self.tenant.slug}


@pytest_asyncio.fixture
async def workspace(seed: Seeder) -> Workspace:
    owner = await seed.user("owner@acme.io", "Olive Owner")
    tenant = await seed.tenant("acme")
    await seed.member(tenant, owner, Role.owner)
    return Workspace(tenant=tenant, owner=owner)
