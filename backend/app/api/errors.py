"""Typed API errors and the JSON response envelopes.

Resolvers and services raise these; only the request dispatcher turns them
into HTTP responses.
"""

from collections.abc import Iterable
from typing import Any

from fastapi.responses import JSONResponse


class ApiError(Exception):
    """Base for errors that map to a declared HTTP status."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"success": False, "error": error}

    def headers(self) -> dict[str, str] | None:
        return None


class ValidationError(ApiError):
    """Bad input shape. Details carry field-level messages."""

    status_code = 400
    code = "VALIDATION_ERROR"


class BadRequestError(ApiError):
    """Well-formed input that the operation cannot accept."""

    status_code = 400
    code = "BAD_REQUEST"


class AuthenticationError(ApiError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)

    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class AuthorizationError(ApiError):
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"


class MethodNotAllowedError(ApiError):
    status_code = 405
    code = "METHOD_NOT_ALLOWED"

    def __init__(self, method: str, allowed: Iterable[str]) -> None:
        self.allowed = list(allowed)
        super().__init__(f"Method {method} not allowed", details={"allowed": self.allowed})

    def headers(self) -> dict[str, str] | None:
        return {"Allow": ", ".join(self.allowed)}


class ConflictError(ApiError):
    """Persistence constraint violation or duplicate resource."""

    status_code = 409
    code = "CONFLICT"


class UnexpectedError(ApiError):
    """Anything uncategorized. The message never carries internal detail."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)


def success_response(data: Any, status_code: int = 200) -> JSONResponse:
    """Wrap handler output in the success envelope.

    Args:
        data: JSON-compatible handler result
        status_code: HTTP status to send

    Returns:
        JSONResponse with body {"success": true, "data": ...}
    """
    return JSONResponse(status_code=status_code, content={"success": True, "data": data})


def error_response(error: ApiError) -> JSONResponse:
    """Render a typed error as the error envelope with its declared status."""
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_payload(),
        headers=error.headers(),
    )
