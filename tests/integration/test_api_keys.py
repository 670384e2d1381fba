"""Integration tests for API key management and API-key authentication on v1."""

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.db.models import ApiKey
from backend.app.models.common import Role
from backend.app.services.scopes import COMMS_PEOPLE_READ
from tests.conftest import Seeder, Workspace


@pytest.mark.asyncio
async def test_owner_creates_lists_and_revokes_a_key(
    client: httpx.AsyncClient, workspace: Workspace
) -> None:
    base = f"/api/tenants/{workspace.tenant.slug}/api-keys"

    created = await client.post(base, json={"name": "CI"}, headers=workspace.owner.headers)

    assert created.status_code == 201
    key = created.json()["data"]["key"]
    assert key["key"].startswith("sp_live_")
    assert key["key"].startswith(key["key_prefix"])
    assert "comms:people:write" in key["scopes"]

    listed = await client.get(base, headers=workspace.owner.headers)
    keys = listed.json()["data"]["keys"]
    assert [k["id"] for k in keys] == [key["id"]]
    assert "key" not in keys[0]
    assert "key_hash" not in keys[0]

    people = await client.get("/api/v1/people", headers={"X-API-Key": key["key"]})
    assert people.status_code == 200

    revoked = await client.delete(f"{base}/{key['id']}", headers=workspace.owner.headers)
    assert revoked.status_code == 200

    people = await client.get("/api/v1/people", headers={"X-API-Key": key["key"]})
    assert people.status_code == 401
    assert people.json()["error"]["message"] == "Invalid or expired API key"


@pytest.mark.asyncio
async def test_revoke_by_action(client: httpx.AsyncClient, seed: Seeder, workspace: Workspace) -> None:
    raw = await seed.api_key(workspace.tenant, workspace.owner)
    keys = await client.get(
        f"/api/tenants/{workspace.tenant.slug}/api-keys", headers=workspace.owner.headers
    )
    key_id = keys.json()["data"]["keys"][0]["id"]

    response = await client.post(
        f"/api/tenants/{workspace.tenant.slug}/api-keys/{key_id}",
        json={"action": "revoke"},
        headers=workspace.owner.headers,
    )

    assert response.status_code == 200
    assert (await client.get("/api/v1/people", headers={"X-API-Key": raw})).status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("role", [Role.admin, Role.member])
async def test_non_owner_cannot_manage_keys(
    client: httpx.AsyncClient, seed: Seeder, workspace: Workspace, role: Role
) -> None:
    user = await seed.user(f"{role.value}@acme.io")
    await seed.member(workspace.tenant, user, role)

    response = await client.post(
        f"/api/tenants/{workspace.tenant.slug}/api-keys", json={"name": "mine"}, headers=user.headers
    )

    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Only tenant owners can create API keys"


@pytest.mark.asyncio
async def test_admin_cannot_revoke(client: httpx.AsyncClient, seed: Seeder, workspace: Workspace) -> None:
    raw = await seed.api_key(workspace.tenant, workspace.owner)
    keys = await client.get(
        f"/api/tenants/{workspace.tenant.slug}/api-keys", headers=workspace.owner.headers
    )
    key_id = keys.json()["data"]["keys"][0]["id"]
    admin = await seed.user("admin@acme.io")
    await seed.member(workspace.tenant, admin, Role.admin)

    response = await client.post(
        f"/api/tenants/{workspace.tenant.slug}/api-keys/{key_id}",
        json={"action": "revoke"},
        headers=admin.headers,
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"
    assert (await client.get("/api/v1/people", headers={"X-API-Key": raw})).status_code == 200


@pytest.mark.asyncio
async def test_unknown_scope_is_400(client: httpx.AsyncClient, workspace: Workspace) -> None:
    response = await client.post(
        f"/api/tenants/{workspace.tenant.slug}/api-keys",
        json={"name": "CI", "scopes": ["comms:people:read", "billing:all"]},
        headers=workspace.owner.headers,
    )

    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["message"] == "Unknown scope: billing:all"


@pytest.mark.asyncio
async def test_key_without_scope_is_403(
    client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
) -> None:
    raw = await seed.api_key(workspace.tenant, workspace.owner, scopes=[COMMS_PEOPLE_READ])
    headers = {"X-API-Key": raw}

    assert (await client.get("/api/v1/people", headers=headers)).status_code == 200

    write = await client.post("/api/v1/people", json={"firstName": "Ada"}, headers=headers)
    assert write.status_code == 403
    assert write.json()["error"]["message"] == "API key lacks required scope: comms:people:write"

    companies = await client.get("/api/v1/companies", headers=headers)
    assert companies.status_code == 403


@pytest.mark.asyncio
async def test_wildcard_scope(client: httpx.AsyncClient, seed: Seeder, workspace: Workspace) -> None:
    raw = await seed.api_key(workspace.tenant, workspace.owner, scopes=["comms:*:read"])

    response = await client.get("/api/v1/companies", headers={"Authorization": f"Bearer {raw}"})

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_key_is_bound_to_its_tenant(
    client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
) -> None:
    other = await seed.tenant("globex")
    await seed.member(other, workspace.owner, Role.owner)
    raw = await seed.api_key(workspace.tenant, workspace.owner)

    mismatch = await client.get(
        "/api/v1/people", headers={"X-API-Key": raw, "X-Tenant-Slug": "globex"}
    )
    assert mismatch.status_code == 403
    assert mismatch.json()["error"]["message"] == "API key is not valid for this tenant"

    match = await client.get("/api/v1/people", headers={"X-API-Key": raw, "X-Tenant-Slug": "acme"})
    assert match.status_code == 200


@pytest.mark.asyncio
async def test_key_acts_with_creator_role(
    client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
) -> None:
    """A key created by a member cannot delete even with write scope."""
    member = await seed.user("member@acme.io")
    await seed.member(workspace.tenant, member, Role.member)
    raw = await seed.api_key(workspace.tenant, member)
    headers = {"X-API-Key": raw}

    created = await client.post("/api/v1/people", json={"firstName": "Ada"}, headers=headers)
    assert created.status_code == 201

    deleted = await client.delete(f"/api/v1/people/{created.json()['data']['id']}", headers=headers)
    assert deleted.status_code == 403


@pytest.mark.asyncio
async def test_api_keys_are_rejected_outside_v1(
    client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
) -> None:
    raw = await seed.api_key(workspace.tenant, workspace.owner)

    response = await client.get(f"/api/tenants/{workspace.tenant.slug}", headers={"X-API-Key": raw})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_successful_use_stamps_last_used(
    client: httpx.AsyncClient,
    seed: Seeder,
    workspace: Workspace,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    raw = await seed.api_key(workspace.tenant, workspace.owner)

    await client.get("/api/v1/people", headers={"X-API-Key": raw})

    async with session_factory() as session:
        key = (await session.execute(select(ApiKey))).scalar_one()
    assert key.last_used_at is not None


@pytest.mark.asyncio
async def test_expired_key_is_401(client: httpx.AsyncClient, workspace: Workspace) -> None:
    created = await client.post(
        f"/api/tenants/{workspace.tenant.slug}/api-keys",
        json={"name": "old", "expiresAt": "2000-01-01T00:00:00Z"},
        headers=workspace.owner.headers,
    )
    assert created.status_code == 201
    raw = created.json()["data"]["key"]["key"]

    response = await client.get("/api/v1/people", headers={"X-API-Key": raw})

    assert response.status_code == 401
