"""Schema validation for dispatched requests."""

import json
from typing import Any, TypeVar

from fastapi import Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from backend.app.api.errors import ValidationError

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def _query_dict(request: Request) -> dict[str, Any]:
    """Flatten query params, keeping repeated keys as lists."""
    data: dict[str, Any] = {}
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        data[key] = values if len(values) > 1 else values[0]
    return data


async def collect_raw_data(request: Request) -> dict[str, Any]:
    """Gather the raw input a schema is validated against.

    GET reads query and path parameters only. Other methods merge the JSON
    body with query and path parameters; later sources win, so a path
    parameter can never be overridden from the body.

    Raises:
        ValidationError: If the body is not a JSON object.
    """
    raw: dict[str, Any] = {}

    if request.method != "GET":
        body = await request.body()
        if body.strip():
            try:
                parsed = json.loads(body)
            except json.JSONDecodeError as e:
                raise ValidationError(
                    "Request body is not valid JSON",
                    details=[{"field": None, "message": str(e), "type": "json_invalid"}],
                ) from e
            if not isinstance(parsed, dict):
                raise ValidationError(
                    "Request body must be a JSON object",
                    details=[{"field": None, "message": "Expected object", "type": "object_type"}],
                )
            raw.update(parsed)

    raw.update(_query_dict(request))
    raw.update(request.path_params)
    return raw


def format_errors(exc: PydanticValidationError) -> list[dict[str, Any]]:
    """Convert pydantic errors into the field-level detail list."""
    details = []
    for err in exc.errors(include_url=False, include_context=False):
        field = ".".join(str(part) for part in err["loc"]) or None
        details.append({"field": field, "message": err["msg"], "type": err["type"]})
    return details


def validate_data(schema: type[SchemaT], raw: dict[str, Any]) -> SchemaT:
    """Validate raw input against a schema.

    Args:
        schema: Pydantic model declared for the request method
        raw: Merged body/query/path input

    Returns:
        Validated model instance

    Raises:
        ValidationError: With field-level details on failure
    """
    try:
        return schema.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError("Invalid request data", details=format_errors(e)) from e


class NoInput(BaseModel):
    """Schema for methods that take no input beyond path parameters."""
