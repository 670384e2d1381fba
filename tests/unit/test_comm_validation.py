"""Unit tests for comm value validation and canonicalization."""

import pytest

from backend.app.api.errors import ValidationError
from backend.app.models.common import CommType
from backend.app.services.comm_validation import (
    extract_linkedin_vanity_name,
    normalize_comm,
    normalize_phone_number,
)


class TestEmail:
    def test_bare_string_is_stripped_and_lowercased(self) -> None:
        value, canonical = normalize_comm(CommType.email, "  Alice@Acme.IO ")

        assert value == {"address": "alice@acme.io"}
        assert canonical == "alice@acme.io"

    def test_object_form(self) -> None:
        _, canonical = normalize_comm("email", {"address": "bob@acme.io"})
        assert canonical == "bob@acme.io"

    def test_invalid_address_reports_nested_field(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            normalize_comm(CommType.email, "not-an-email")

        assert exc_info.value.status_code == 400
        assert exc_info.value.details[0]["field"] == "value.address"


class TestPhone:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("(415) 555-0100", "+14155550100"),
            ("+44 20 7946 0958", "+442079460958"),
            ("33 1 42 68 53 00", "+33142685300"),
        ],
    )
    def test_normalize_phone_number(self, raw: str, expected: str) -> None:
        assert normalize_phone_number(raw) == expected

    def test_phone_defaults_channels(self) -> None:
        value, canonical = normalize_comm(CommType.phone, "415-555-0100")

        assert value == {"number": "+14155550100", "sms": True, "voice": True}
        assert canonical == "+14155550100"

    def test_whatsapp_is_normalized_like_phone(self) -> None:
        _, canonical = normalize_comm(CommType.whatsapp, {"number": "415.555.0100"})
        assert canonical == "+14155550100"


class TestLinkedin:
    def test_vanity_name_is_extracted_from_url(self) -> None:
        assert extract_linkedin_vanity_name("https://www.linkedin.com/in/jane-doe/") == "jane-doe"

    def test_url_only_value(self) -> None:
        value, canonical = normalize_comm(
            CommType.linkedin, "https://www.linkedin.com/in/jane-doe/"
        )

        assert canonical == "jane-doe"
        assert value["vanityName"] == "jane-doe"
        assert value["url"].startswith("https://www.linkedin.com/in/jane-doe")

    def test_explicit_vanity_name_wins(self) -> None:
        _, canonical = normalize_comm(
            CommType.linkedin,
            {"url": "https://www.linkedin.com/in/jane-doe", "vanityName": "jdoe"},
        )
        assert canonical == "jdoe"


def test_slack_canonical_combines_workspace_and_handle() -> None:
    value, canonical = normalize_comm(CommType.slack, {"handle": "Bob", "workspace": "Acme"})

    assert value == {"handle": "bob", "workspace": "acme"}
    assert canonical == "acme:bob"


def test_other_requires_label() -> None:
    with pytest.raises(ValidationError):
        normalize_comm(CommType.other, {"value": "pager 42"})


def test_non_string_non_object_value_is_rejected() -> None:
    with pytest.raises(ValidationError) as exc_info:
        normalize_comm(CommType.email, 42)

    assert exc_info.value.details[0]["type"] == "comm_value"
