"""Company domain and website normalization."""

import re
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator

_LABEL = re.compile(r"^[a-z0-9-]+$")
_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)


def normalize_domain(raw: str) -> str:
    """Reduce a domain or pasted URL to a bare lowercase host without "www."."""
    s = raw.strip().lower()
    if not s:
        return ""

    if "://" in s:
        s = urlsplit(s).hostname or s
    s = re.split(r"[/?#]", s, maxsplit=1)[0]
    s = s.split(":", 1)[0]
    s = s.strip(".")
    if s.startswith("www."):
        s = s[4:]
    return s


def is_valid_domain(raw: str) -> bool:
    s = normalize_domain(raw)
    if not s or len(s) > 253 or ".." in s or "." not in s:
        return False
    for label in s.split("."):
        if not label or len(label) > 63 or not _LABEL.match(label):
            return False
        if label.startswith("-") or label.endswith("-"):
            return False
    return True


def try_normalize_website_url(raw: str) -> str | None:
    """Normalize a website URL, or return None if it cannot be parsed.

    A missing scheme defaults to https. Query, fragment, default ports and a
    trailing slash are dropped and the host is lowercased.
    """
    s = raw.strip()
    if not s:
        return None
    if not _SCHEME.match(s):
        s = f"https://{s}"

    parts = urlsplit(s)
    if not parts.hostname:
        return None
    try:
        port = parts.port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if (scheme, port) in (("https", 443), ("http", 80)):
        port = None
    netloc = parts.hostname if port is None else f"{parts.hostname}:{port}"
    path = "" if parts.path == "/" else parts.path

    return urlunsplit((scheme, netloc, path, "", "")).rstrip("/")


class CompanyDomainIn(BaseModel):
    domain: str = Field(..., min_length=1)
    is_primary: bool = Field(default=False, alias="isPrimary")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("domain")
    @classmethod
    def _domain(cls, v: str) -> str:
        if not is_valid_domain(v):
            raise ValueError("Invalid domain")
        return normalize_domain(v)


class CompanyWebsiteIn(BaseModel):
    url: str = Field(..., min_length=1)
    type: str | None = None
    is_primary: bool = Field(default=False, alias="isPrimary")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("url")
    @classmethod
    def _url(cls, v: str) -> str:
        normalized = try_normalize_website_url(v)
        if normalized is None:
            raise ValueError("Invalid website URL")
        return normalized
