"""Integration tests for tenant lifecycle, membership management and member profiles."""

import httpx
import pytest

from backend.app.models.common import MembershipStatus, Role
from tests.conftest import Seeder, Workspace


class TestUserScoped:
    @pytest.mark.asyncio
    async def test_create_tenant_makes_caller_owner(
        self, client: httpx.AsyncClient, seed: Seeder
    ) -> None:
        user = await seed.user("founder@initech.io")

        created = await client.post(
            "/api/user/tenants", json={"name": "Initech"}, headers=user.headers
        )

        assert created.status_code == 201
        tenant = created.json()["data"]
        assert tenant["name"] == "Initech"
        assert tenant["role"] == "owner"
        assert len(tenant["slug"]) == 8

        listed = await client.get("/api/user/tenants", headers=user.headers)
        assert [t["slug"] for t in listed.json()["data"]] == [tenant["slug"]]

        detail = await client.get(f"/api/tenants/{tenant['slug']}", headers=user.headers)
        assert detail.status_code == 200

    @pytest.mark.asyncio
    async def test_profile_update(self, client: httpx.AsyncClient, workspace: Workspace) -> None:
        headers = workspace.owner.headers
        await client.patch(
            "/api/user/profile", json={"preferences": {"theme": "dark"}}, headers=headers
        )

        response = await client.patch(
            "/api/user/profile",
            json={
                "displayName": "Olive O.",
                "timezone": None,
                "avatarUrl": "https://cdn.acme.io/olive.png",
                "preferences": {"density": "compact"},
            },
            headers=headers,
        )

        assert response.status_code == 200
        profile = response.json()["data"]
        assert profile["display_name"] == "Olive O."
        assert profile["timezone"] == "UTC"
        assert profile["avatar_url"] == "https://cdn.acme.io/olive.png"
        assert profile["preferences"] == {"theme": "dark", "density": "compact"}

    @pytest.mark.asyncio
    async def test_profile_rejects_bad_avatar_url(
        self, client: httpx.AsyncClient, workspace: Workspace
    ) -> None:
        response = await client.patch(
            "/api/user/profile", json={"avatarUrl": "not a url"}, headers=workspace.owner.headers
        )

        assert response.status_code == 400


class TestTenantSettings:
    @pytest.mark.asyncio
    async def test_owner_renames_tenant(
        self, client: httpx.AsyncClient, workspace: Workspace
    ) -> None:
        response = await client.patch(
            f"/api/tenants/{workspace.tenant.slug}/settings-general",
            json={"name": "Acme Corp"},
            headers=workspace.owner.headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Acme Corp"

    @pytest.mark.asyncio
    async def test_admin_cannot_rename_or_delete(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        admin = await seed.user("admin@acme.io")
        await seed.member(workspace.tenant, admin, Role.admin)
        url = f"/api/tenants/{workspace.tenant.slug}"

        renamed = await client.patch(url, json={"name": "Mine"}, headers=admin.headers)
        assert renamed.status_code == 403
        assert renamed.json()["error"]["message"] == "Only tenant owners can update tenant settings"

        deleted = await client.delete(url, headers=admin.headers)
        assert deleted.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_deletes_tenant(
        self, client: httpx.AsyncClient, workspace: Workspace
    ) -> None:
        url = f"/api/tenants/{workspace.tenant.slug}"

        assert (await client.delete(url, headers=workspace.owner.headers)).status_code == 200
        assert (await client.get(url, headers=workspace.owner.headers)).status_code == 404


class TestMembers:
    @pytest.mark.asyncio
    async def test_list_with_stats(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        viewer = await seed.user("viewer@acme.io")
        await seed.member(workspace.tenant, viewer, Role.viewer)

        response = await client.get(
            f"/api/tenants/{workspace.tenant.slug}/users", headers=workspace.owner.headers
        )

        data = response.json()["data"]
        assert sorted(u["email"] for u in data["users"]) == ["owner@acme.io", "viewer@acme.io"]
        assert data["stats"]["total"] == 2
        assert data["stats"]["by_role"]["viewer"] == 1

    @pytest.mark.asyncio
    async def test_member_cannot_list_users(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        member = await seed.user("member@acme.io")
        await seed.member(workspace.tenant, member, Role.member)

        response = await client.get(
            f"/api/tenants/{workspace.tenant.slug}/users", headers=member.headers
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_change_role(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        member = await seed.user("member@acme.io")
        membership_id = await seed.member(workspace.tenant, member, Role.member)

        response = await client.patch(
            f"/api/tenants/{workspace.tenant.slug}/users/{membership_id}",
            json={"role": "admin"},
            headers=workspace.owner.headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["user"]["role"] == "admin"

    @pytest.mark.asyncio
    async def test_last_owner_cannot_be_demoted(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        admin = await seed.user("admin@acme.io")
        await seed.member(workspace.tenant, admin, Role.admin)
        users = await client.get(
            f"/api/tenants/{workspace.tenant.slug}/users", headers=workspace.owner.headers
        )
        owner_membership = next(
            u["id"] for u in users.json()["data"]["users"] if u["email"] == "owner@acme.io"
        )

        response = await client.patch(
            f"/api/tenants/{workspace.tenant.slug}/users/{owner_membership}",
            json={"role": "admin"},
            headers=workspace.owner.headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_last_active_owner_cannot_be_deactivated(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        dormant = await seed.user("dormant@acme.io")
        await seed.member(workspace.tenant, dormant, Role.owner, MembershipStatus.inactive)
        users = await client.get(
            f"/api/tenants/{workspace.tenant.slug}/users", headers=workspace.owner.headers
        )
        owner_membership = next(
            u["id"] for u in users.json()["data"]["users"] if u["email"] == "owner@acme.io"
        )
        url = f"/api/tenants/{workspace.tenant.slug}/users/{owner_membership}"

        deactivated = await client.patch(
            url, json={"status": "inactive"}, headers=workspace.owner.headers
        )
        assert deactivated.status_code == 400
        assert (
            deactivated.json()["error"]["message"]
            == "Cannot deactivate the last owner of the tenant"
        )

        demoted = await client.patch(url, json={"role": "member"}, headers=workspace.owner.headers)
        assert demoted.status_code == 400

        tenant = await client.get(
            f"/api/tenants/{workspace.tenant.slug}", headers=workspace.owner.headers
        )
        assert tenant.status_code == 200

    @pytest.mark.asyncio
    async def test_inactive_owner_can_be_demoted_while_another_owner_is_active(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        dormant = await seed.user("dormant@acme.io")
        membership_id = await seed.member(
            workspace.tenant, dormant, Role.owner, MembershipStatus.inactive
        )

        response = await client.patch(
            f"/api/tenants/{workspace.tenant.slug}/users/{membership_id}",
            json={"role": "member"},
            headers=workspace.owner.headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["user"]["role"] == "member"

    @pytest.mark.asyncio
    async def test_custom_permissions_are_rejected(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        member = await seed.user("member@acme.io")
        membership_id = await seed.member(workspace.tenant, member, Role.member)

        response = await client.patch(
            f"/api/tenants/{workspace.tenant.slug}/users/{membership_id}",
            json={"permissions": {"delete": True}},
            headers=workspace.owner.headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Custom permissions are not supported"

    @pytest.mark.asyncio
    async def test_remove_member(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        member = await seed.user("member@acme.io")
        membership_id = await seed.member(workspace.tenant, member, Role.member)
        url = f"/api/tenants/{workspace.tenant.slug}/users/{membership_id}"

        assert (await client.delete(url, headers=workspace.owner.headers)).status_code == 200

        response = await client.get(
            f"/api/tenants/{workspace.tenant.slug}", headers=member.headers
        )
        assert response.status_code == 403


class TestMemberProfiles:
    @pytest.mark.asyncio
    async def test_create_list_delete(
        self, client: httpx.AsyncClient, seed: Seeder, workspace: Workspace
    ) -> None:
        member = await seed.user("member@acme.io")
        membership_id = await seed.member(workspace.tenant, member, Role.member)
        base = f"/api/tenants/{workspace.tenant.slug}/member-profiles"

        created = await client.post(
            base, json={"tenantUserId": str(membership_id)}, headers=workspace.owner.headers
        )
        assert created.status_code == 201
        profile_id = created.json()["data"]["profile"]["member_profile_id"]

        duplicate = await client.post(
            base, json={"tenantUserId": str(membership_id)}, headers=workspace.owner.headers
        )
        assert duplicate.status_code == 409

        listed = await client.get(base, headers=workspace.owner.headers)
        by_email = {m["email"]: m for m in listed.json()["data"]["members"]}
        assert by_email["member@acme.io"]["has_member_profile"] is True
        assert by_email["owner@acme.io"]["has_member_profile"] is False

        deleted = await client.delete(f"{base}/{profile_id}", headers=workspace.owner.headers)
        assert deleted.status_code == 200
