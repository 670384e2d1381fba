"""Health check endpoints.

- /health is a liveness check
- /healthz checks database connectivity and reports configured integrations
"""

from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text

from backend.app.dependencies import AppDependencies

router = APIRouter()


async def check_db(deps: AppDependencies) -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    try:
        async with deps.session_factory() as session:
            await session.execute(text("SELECT 1"))
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


def check_integrations(deps: AppDependencies) -> str:
    available = deps.adapters.available()
    if not available:
        return "not_configured"
    return ",".join(f"{a['provider']}:{a['method']}" for a in available)


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(request: Request) -> dict[str, Any] | Response:
    """Readiness check.

    Returns:
        200 with component status if the database is reachable
        503 otherwise
    """
    deps: AppDependencies = request.app.state.deps

    db_ok, db_status = await check_db(deps)
    body = {
        "status": "ok" if db_ok else "degraded",
        "components": {
            "db": db_status,
            "integrations": check_integrations(deps),
        },
    }

    if not db_ok:
        return JSONResponse(body, status_code=503)
    return body
