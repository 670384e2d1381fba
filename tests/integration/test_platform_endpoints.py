"""Integration tests for health, metrics and the generated API document."""

import httpx
import pytest

from backend.app.api.routes import health
from backend.app.dependencies import AppDependencies
from tests.conftest import Workspace


@pytest.mark.asyncio
async def test_health(client: httpx.AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_healthz_reports_components(client: httpx.AsyncClient) -> None:
    response = await client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "components": {"db": "ok", "integrations": "not_configured"},
    }


@pytest.mark.asyncio
async def test_healthz_is_503_when_database_is_down(
    client: httpx.AsyncClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def broken(deps: AppDependencies) -> tuple[bool, str]:
        return (False, "error: OperationalError")

    monkeypatch.setattr(health, "check_db", broken)

    response = await client.get("/healthz")

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
    assert response.json()["components"]["db"] == "error: OperationalError"


@pytest.mark.asyncio
async def test_metrics_count_dispatched_requests(
    client: httpx.AsyncClient, workspace: Workspace
) -> None:
    await client.get("/api/v1/people", headers=workspace.v1_headers)

    response = await client.get("/metrics")

    assert response.status_code == 200
    body = response.text
    assert "api_requests_total" in body
    assert 'endpoint="/api/v1/people"' in body


class TestApiDocument:
    @pytest.mark.asyncio
    async def test_document_lists_v1_paths(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/docs/spec.json")

        assert response.status_code == 200
        assert response.headers["Cache-Control"] == "public, s-maxage=60"
        document = response.json()
        assert document["openapi"] == "3.1.0"
        assert set(document["paths"]["/api/v1/people"]) == {"get", "post"}
        assert set(document["paths"]["/api/v1/people/{personId}"]) == {"get", "patch", "delete"}
        assert not any(path.startswith("/api/tenants") for path in document["paths"])

    @pytest.mark.asyncio
    async def test_operations_carry_required_scope(self, client: httpx.AsyncClient) -> None:
        document = (await client.get("/api/docs/spec.json")).json()

        people = document["paths"]["/api/v1/people"]
        assert people["get"]["x-required-scope"] == "comms:people:read"
        assert people["post"]["x-required-scope"] == "comms:people:write"
        assert "firstName" in people["post"]["requestBody"]["content"]["application/json"][
            "schema"
        ]["properties"]

    @pytest.mark.asyncio
    async def test_path_parameters_are_not_body_fields(self, client: httpx.AsyncClient) -> None:
        document = (await client.get("/api/docs/spec.json")).json()

        patch = document["paths"]["/api/v1/people/{personId}"]["patch"]
        body = patch["requestBody"]["content"]["application/json"]["schema"]
        assert "personId" not in body["properties"]
        assert {"name": "personId", "in": "path", "required": True, "schema": {"type": "string"}} in (
            patch["parameters"]
        )
