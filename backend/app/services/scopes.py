"""API key scopes for the v1 product API.

Scopes are package-prefixed "package:resource:action" strings. A key holding
"package:*:action" is granted that action on every resource of the package.
"""

from collections.abc import Iterable

PACKAGE_COMMS = "comms"

COMMS_PEOPLE_READ = f"{PACKAGE_COMMS}:people:read"
COMMS_PEOPLE_WRITE = f"{PACKAGE_COMMS}:people:write"
COMMS_COMPANIES_READ = f"{PACKAGE_COMMS}:companies:read"
COMMS_COMPANIES_WRITE = f"{PACKAGE_COMMS}:companies:write"
COMMS_COMMS_READ = f"{PACKAGE_COMMS}:comms:read"
COMMS_COMMS_WRITE = f"{PACKAGE_COMMS}:comms:write"

COMMS_SCOPES_READ = [COMMS_PEOPLE_READ, COMMS_COMPANIES_READ, COMMS_COMMS_READ]
COMMS_SCOPES_WRITE = [COMMS_PEOPLE_WRITE, COMMS_COMPANIES_WRITE, COMMS_COMMS_WRITE]
COMMS_SCOPES_FULL = COMMS_SCOPES_READ + COMMS_SCOPES_WRITE


def scopes_include(scopes: Iterable[str], required: str) -> bool:
    """Check whether granted scopes cover the required scope.

    Args:
        scopes: Scopes held by the caller
        required: Scope the endpoint demands

    Returns:
        True on exact match or a matching package wildcard
    """
    granted = set(scopes)
    if required in granted:
        return True

    parts = required.split(":")
    if len(parts) != 3:
        return False
    package, _, action = parts
    return f"{package}:*:{action}" in granted


def is_known_scope(scope: str) -> bool:
    """True for a declared scope or a package wildcard over a declared action."""
    if scope in COMMS_SCOPES_FULL:
        return True
    return scope in (f"{PACKAGE_COMMS}:*:read", f"{PACKAGE_COMMS}:*:write")
