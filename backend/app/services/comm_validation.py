"""Communication channel value shapes and canonicalization.

Each comm type stores a typed JSON value plus a canonical string; the
canonical form is what the (tenant, type, canonical_value) unique constraint
deduplicates on.
"""

import re
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, field_validator
from pydantic import ValidationError as PydanticValidationError

from backend.app.api.errors import ValidationError
from backend.app.api.validation import format_errors
from backend.app.models.common import CommType


class _Stripped(BaseModel):
    @field_validator("*", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class EmailValue(_Stripped):
    address: EmailStr

    @field_validator("address", mode="after")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()


class PhoneValue(_Stripped):
    number: str = Field(..., min_length=1)
    sms: bool = True
    voice: bool = True


class WhatsappValue(_Stripped):
    number: str = Field(..., min_length=1)


class LinkedinValue(_Stripped):
    vanity_name: str = Field(..., min_length=1, alias="vanityName")
    url: HttpUrl
    urn: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class SlackValue(_Stripped):
    handle: str = Field(..., min_length=1)
    workspace: str = Field(..., min_length=1)

    @field_validator("handle", "workspace", mode="after")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()


class OtherValue(_Stripped):
    label: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)


def normalize_phone_number(raw: str) -> str:
    """Normalize a phone number towards E.164.

    Strips everything but digits and "+". Ten bare digits are taken as a
    North American number and get "+1"; other bare numbers get "+".
    """
    cleaned = re.sub(r"[^\d+]", "", raw)
    if cleaned and not cleaned.startswith("+"):
        cleaned = f"+1{cleaned}" if len(cleaned) == 10 else f"+{cleaned}"
    return cleaned


def extract_linkedin_vanity_name(url: str) -> str:
    """Extract the vanity name from a linkedin.com/in/<name> URL."""
    parts = [p for p in urlparse(url).path.split("/") if p]
    if len(parts) >= 2 and parts[0] == "in":
        return parts[1]
    return parts[-1] if parts else url


def _as_mapping(value: Any, key: str) -> dict[str, Any]:
    if isinstance(value, str):
        return {key: value}
    if isinstance(value, dict):
        return dict(value)
    raise ValidationError(
        "Invalid comm value",
        details=[{"field": "value", "message": "Expected string or object", "type": "comm_value"}],
    )


def normalize_comm(comm_type: CommType | str, value: Any) -> tuple[dict[str, Any], str]:
    """Validate a comm value and compute its canonical form.

    Args:
        comm_type: Communication channel type
        value: Raw value, either a bare string or the typed object

    Returns:
        (stored JSON value, canonical value)

    Raises:
        ValidationError: If the value does not fit the type's shape
    """
    comm_type = CommType(comm_type)
    try:
        if comm_type == CommType.email:
            email = EmailValue.model_validate(_as_mapping(value, "address"))
            return email.model_dump(), email.address

        if comm_type == CommType.phone:
            phone = PhoneValue.model_validate(_as_mapping(value, "number"))
            phone.number = normalize_phone_number(phone.number)
            return phone.model_dump(), phone.number

        if comm_type == CommType.whatsapp:
            whatsapp = WhatsappValue.model_validate(_as_mapping(value, "number"))
            whatsapp.number = normalize_phone_number(whatsapp.number)
            return whatsapp.model_dump(), whatsapp.number

        if comm_type == CommType.linkedin:
            data = _as_mapping(value, "url")
            if not data.get("vanityName") and not data.get("vanity_name"):
                data["vanityName"] = extract_linkedin_vanity_name(str(data.get("url") or ""))
            linkedin = LinkedinValue.model_validate(data)
            return linkedin.model_dump(mode="json", by_alias=True), linkedin.vanity_name

        if comm_type == CommType.slack:
            slack = SlackValue.model_validate(_as_mapping(value, "handle"))
            return slack.model_dump(), f"{slack.workspace}:{slack.handle}"

        other = OtherValue.model_validate(_as_mapping(value, "value"))
        return other.model_dump(), other.value
    except PydanticValidationError as e:
        details = [
            {**d, "field": f"value.{d['field']}" if d["field"] else "value"} for d in format_errors(e)
        ]
        raise ValidationError(f"Invalid {comm_type.value} value", details=details) from e
