"""API documentation endpoint - GET /api/docs/spec.json.

The OpenAPI document for the public v1 API is generated from the mounted
handler tables, so it cannot drift from what the dispatcher enforces.
"""

from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from backend.app.api.service import ApiService, V1ApiService

router = APIRouter(prefix="/api/docs", tags=["docs"])

ERROR_RESPONSES = {
    "400": "Validation failed",
    "401": "Missing or invalid credentials",
    "403": "Not a member of the tenant, or missing role or scope",
    "404": "Tenant or resource not found",
    "405": "Method not allowed",
    "409": "Conflicts with existing data",
}


def mounted_services(app: FastAPI) -> list[ApiService]:
    """Dispatchers registered by create_app(), in registration order."""
    return list(getattr(app.state, "api_services", []))


def _path_parameters(path: str) -> list[dict[str, Any]]:
    params = []
    for segment in path.split("/"):
        if segment.startswith("{") and segment.endswith("}"):
            params.append(
                {"name": segment[1:-1], "in": "path", "required": True, "schema": {"type": "string"}}
            )
    return params


def _operation(service: ApiService, method: str) -> dict[str, Any]:
    spec = service.handlers[method]
    schema = spec.schema.model_json_schema(by_alias=True)
    path_names = {p["name"] for p in _path_parameters(service.path)}
    properties = {
        k: v for k, v in schema.get("properties", {}).items() if k not in path_names
    }

    operation: dict[str, Any] = {
        "summary": spec.summary or f"{method} {service.path}",
        "parameters": _path_parameters(service.path)
        + [
            {
                "name": "X-Tenant-Slug",
                "in": "header",
                "required": False,
                "schema": {"type": "string"},
            }
        ],
        "responses": {
            str(spec.status_code): {"description": "Success envelope"},
            **{code: {"description": text} for code, text in ERROR_RESPONSES.items()},
        },
    }
    if spec.required_scope:
        operation["x-required-scope"] = spec.required_scope

    if method == "GET":
        operation["parameters"] += [
            {"name": name, "in": "query", "schema": prop} for name, prop in properties.items()
        ]
    elif properties:
        body = {**schema, "properties": properties}
        body["required"] = [r for r in schema.get("required", []) if r not in path_names]
        operation["requestBody"] = {"content": {"application/json": {"schema": body}}}
    return operation


def build_openapi(services: list[ApiService]) -> dict[str, Any]:
    """Build an OpenAPI 3.1 document for the v1 dispatchers."""
    paths: dict[str, Any] = {}
    for service in services:
        if not isinstance(service, V1ApiService):
            continue
        paths[service.path] = {
            method.lower(): _operation(service, method) for method in service.allowed_methods
        }

    return {
        "openapi": "3.1.0",
        "info": {"title": "CRM Product API", "version": "1.0.0"},
        "components": {
            "securitySchemes": {
                "apiKey": {"type": "apiKey", "in": "header", "name": "X-API-Key"},
                "bearer": {"type": "http", "scheme": "bearer"},
            }
        },
        "security": [{"apiKey": []}, {"bearer": []}],
        "paths": paths,
    }


@router.get("/spec.json")
async def openapi_spec(request: Request) -> JSONResponse:
    """Serve the generated v1 API document."""
    document = build_openapi(mounted_services(request.app))
    return JSONResponse(document, headers={"Cache-Control": "public, s-maxage=60"})
