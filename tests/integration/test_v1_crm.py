"""Integration tests for the v1 people and companies API."""

import uuid

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.db.models import Comm, Company, PersonCompany
from backend.app.models.common import Role
from tests.conftest import Seeder, Workspace


async def _create_person(client: httpx.AsyncClient, headers: dict[str, str], **body: str) -> str:
    response = await client.post("/api/v1/people", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


async def _create_company(client: httpx.AsyncClient, headers: dict[str, str], **body: object) -> str:
    response = await client.post("/api/v1/companies", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


async def _count(session_factory: async_sessionmaker[AsyncSession], model: type) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestPeople:
    @pytest.mark.asyncio
    async def test_create_then_get(self, client: httpx.AsyncClient, workspace: Workspace) -> None:
        person_id = await _create_person(
            client, workspace.v1_headers, firstName="Ada", lastName="Lovelace", bio="Analyst"
        )

        response = await client.get(f"/api/v1/people/{person_id}", headers=workspace.v1_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == person_id
        assert data["firstName"] == "Ada"
        assert data["lastName"] == "Lovelace"
        assert data["bio"] == "Analyst"
        assert data["companies"] == []
        assert data["comms"] == []

    @pytest.mark.asyncio
    async def test_list_is_tenant_scoped(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        other = await seed.tenant("globex")
        await seed.member(other, workspace.owner, Role.owner)
        await _create_person(client, workspace.v1_headers, firstName="Ada")
        await _create_person(
            client, {**workspace.owner.headers, "X-Tenant-Slug": "globex"}, firstName="Hank"
        )

        response = await client.get("/api/v1/people", headers=workspace.v1_headers)

        assert [p["firstName"] for p in response.json()["data"]] == ["Ada"]

    @pytest.mark.asyncio
    async def test_person_from_other_tenant_is_404(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        other = await seed.tenant("globex")
        await seed.member(other, workspace.owner, Role.owner)
        foreign_id = await _create_person(
            client, {**workspace.owner.headers, "X-Tenant-Slug": "globex"}, firstName="Hank"
        )

        response = await client.get(f"/api/v1/people/{foreign_id}", headers=workspace.v1_headers)

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Person not found"

    @pytest.mark.asyncio
    async def test_update_leaves_omitted_fields(
        self, client: httpx.AsyncClient, workspace: Workspace
    ) -> None:
        person_id = await _create_person(client, workspace.v1_headers, firstName="Ada", bio="x")

        response = await client.patch(
            f"/api/v1/people/{person_id}", json={"bio": None}, headers=workspace.v1_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["firstName"] == "Ada"
        assert response.json()["data"]["bio"] is None

    @pytest.mark.asyncio
    async def test_delete(self, client: httpx.AsyncClient, workspace: Workspace) -> None:
        person_id = await _create_person(client, workspace.v1_headers, firstName="Ada")

        response = await client.delete(f"/api/v1/people/{person_id}", headers=workspace.v1_headers)
        assert response.json() == {"success": True, "data": {"deleted": True}}

        response = await client.get(f"/api/v1/people/{person_id}", headers=workspace.v1_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_member_cannot_delete(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        person_id = await _create_person(client, workspace.v1_headers, firstName="Ada")
        member = await seed.user("member@acme.io")
        await seed.member(workspace.tenant, member, Role.member)

        response = await client.delete(
            f"/api/v1/people/{person_id}", headers={**member.headers, "X-Tenant-Slug": "acme"}
        )

        assert response.status_code == 403


class TestCompanies:
    @pytest.mark.asyncio
    async def test_create_normalizes_domains_and_websites(
        self, client: httpx.AsyncClient, workspace: Workspace
    ) -> None:
        company_id = await _create_company(
            client,
            workspace.v1_headers,
            name="Acme",
            domains=[{"domain": "https://www.Acme.com/", "isPrimary": True}],
            websites=[{"url": "acme.com/careers/", "type": "careers"}],
        )

        response = await client.get(f"/api/v1/companies/{company_id}", headers=workspace.v1_headers)

        data = response.json()["data"]
        assert data["name"] == "Acme"
        assert data["domains"] == [{"domain": "acme.com", "isPrimary": True}]
        assert data["websites"] == [
            {"url": "https://acme.com/careers", "type": "careers", "isPrimary": False}
        ]
        assert data["people"] == []

    @pytest.mark.asyncio
    async def test_invalid_domain_is_400(
        self, client: httpx.AsyncClient, workspace: Workspace
    ) -> None:
        response = await client.post(
            "/api/v1/companies",
            json={"name": "Acme", "domains": [{"domain": "not a domain"}]},
            headers=workspace.v1_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"][0]["field"] == "domains.0.domain"

    @pytest.mark.asyncio
    async def test_patch_replaces_domains(
        self, client: httpx.AsyncClient, workspace: Workspace
    ) -> None:
        company_id = await _create_company(
            client, workspace.v1_headers, name="Acme", domains=[{"domain": "acme.com"}]
        )

        response = await client.patch(
            f"/api/v1/companies/{company_id}",
            json={"domains": [{"domain": "acme.io"}]},
            headers=workspace.v1_headers,
        )

        assert response.status_code == 200
        assert [d["domain"] for d in response.json()["data"]["domains"]] == ["acme.io"]
        assert response.json()["data"]["name"] == "Acme"

    @pytest.mark.asyncio
    async def test_patch_resending_existing_domain_updates_it(
        self, client: httpx.AsyncClient, workspace: Workspace
    ) -> None:
        company_id = await _create_company(
            client,
            workspace.v1_headers,
            name="Acme",
            domains=[{"domain": "acme.com", "isPrimary": False}, {"domain": "acme.net"}],
            websites=[{"url": "https://acme.com", "type": "home"}],
        )

        response = await client.patch(
            f"/api/v1/companies/{company_id}",
            json={
                "domains": [{"domain": "acme.com", "isPrimary": True}, {"domain": "acme.io"}],
                "websites": [{"url": "https://acme.com", "type": "main", "isPrimary": True}],
            },
            headers=workspace.v1_headers,
        )

        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert sorted((d["domain"], d["isPrimary"]) for d in data["domains"]) == [
            ("acme.com", True),
            ("acme.io", False),
        ]
        assert data["websites"] == [{"url": "https://acme.com", "type": "main", "isPrimary": True}]


class TestLinks:
    @pytest.mark.asyncio
    async def test_create_and_link_company(
        self,
        client: httpx.AsyncClient,
        workspace: Workspace,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        person_id = await _create_person(client, workspace.v1_headers, firstName="Ada")

        response = await client.post(
            f"/api/v1/people/{person_id}/companies",
            json={"name": "Analytical Engines", "role": "Founder", "isPrimary": True},
            headers=workspace.v1_headers,
        )

        assert response.status_code == 200
        linked = response.json()["data"]
        assert linked["name"] == "Analytical Engines"
        assert linked["role"] == "Founder"
        assert linked["isPrimary"] is True
        assert await _count(session_factory, Company) == 1

        person = await client.get(f"/api/v1/people/{person_id}", headers=workspace.v1_headers)
        assert [c["id"] for c in person.json()["data"]["companies"]] == [linked["id"]]

    @pytest.mark.asyncio
    async def test_existing_id_wins_over_creation_fields(
        self,
        client: httpx.AsyncClient,
        workspace: Workspace,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        person_id = await _create_person(client, workspace.v1_headers, firstName="Ada")
        company_id = await _create_company(client, workspace.v1_headers, name="Acme")

        response = await client.post(
            f"/api/v1/people/{person_id}/companies",
            json={"companyId": company_id, "name": "Should Not Exist"},
            headers=workspace.v1_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["id"] == company_id
        assert response.json()["data"]["name"] == "Acme"
        assert await _count(session_factory, Company) == 1

    @pytest.mark.asyncio
    async def test_neither_shape_is_400(
        self,
        client: httpx.AsyncClient,
        workspace: Workspace,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        person_id = await _create_person(client, workspace.v1_headers, firstName="Ada")

        response = await client.post(
            f"/api/v1/people/{person_id}/companies",
            json={"role": "Founder"},
            headers=workspace.v1_headers,
        )

        assert response.status_code == 400
        assert "Either companyId or company name must be provided" in response.text
        assert await _count(session_factory, PersonCompany) == 0

    @pytest.mark.asyncio
    async def test_linking_twice_is_idempotent(
        self,
        client: httpx.AsyncClient,
        workspace: Workspace,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        person_id = await _create_person(client, workspace.v1_headers, firstName="Ada")
        company_id = await _create_company(client, workspace.v1_headers, name="Acme")

        for _ in range(2):
            response = await client.post(
                f"/api/v1/companies/{company_id}/people",
                json={"personId": person_id},
                headers=workspace.v1_headers,
            )
            assert response.status_code == 200

        assert await _count(session_factory, PersonCompany) == 1

    @pytest.mark.asyncio
    async def test_link_to_unknown_company_is_404(
        self, client: httpx.AsyncClient, workspace: Workspace
    ) -> None:
        person_id = await _create_person(client, workspace.v1_headers, firstName="Ada")

        response = await client.post(
            f"/api/v1/people/{person_id}/companies",
            json={"companyId": str(uuid.uuid4())},
            headers=workspace.v1_headers,
        )

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Company not found"

    @pytest.mark.asyncio
    async def test_unlink_company(self, client: httpx.AsyncClient, workspace: Workspace) -> None:
        person_id = await _create_person(client, workspace.v1_headers, firstName="Ada")
        company_id = await _create_company(client, workspace.v1_headers, name="Acme")
        await client.post(
            f"/api/v1/people/{person_id}/companies",
            json={"companyId": company_id},
            headers=workspace.v1_headers,
        )

        response = await client.request(
            "DELETE",
            f"/api/v1/people/{person_id}/companies",
            json={"companyId": company_id},
            headers=workspace.v1_headers,
        )

        assert response.json() == {"success": True, "data": {"unlinked": True}}
        company = await client.get(f"/api/v1/companies/{company_id}", headers=workspace.v1_headers)
        assert company.json()["data"]["people"] == []

    @pytest.mark.asyncio
    async def test_comms_are_deduplicated_by_canonical_value(
        self,
        client: httpx.AsyncClient,
        workspace: Workspace,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        person_id = await _create_person(client, workspace.v1_headers, firstName="Ada")
        company_id = await _create_company(client, workspace.v1_headers, name="Acme")

        first = await client.post(
            f"/api/v1/people/{person_id}/comms",
            json={"type": "email", "value": "Ada@Acme.IO"},
            headers=workspace.v1_headers,
        )
        second = await client.post(
            f"/api/v1/companies/{company_id}/comms",
            json={"type": "email", "value": {"address": " ada@acme.io "}},
            headers=workspace.v1_headers,
        )

        assert first.status_code == 200
        assert first.json()["data"]["canonicalValue"] == "ada@acme.io"
        assert second.json()["data"]["id"] == first.json()["data"]["id"]
        assert await _count(session_factory, Comm) == 1

    @pytest.mark.asyncio
    async def test_invalid_comm_value_is_400(
        self, client: httpx.AsyncClient, workspace: Workspace
    ) -> None:
        person_id = await _create_person(client, workspace.v1_headers, firstName="Ada")

        response = await client.post(
            f"/api/v1/people/{person_id}/comms",
            json={"type": "email", "value": "nope"},
            headers=workspace.v1_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid email value"
