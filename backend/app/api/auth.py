"""Auth resolver - turns request credentials into a Principal.

Sessions are opaque tokens issued by the identity provider and stored here
only as sha256 hashes. They arrive as the session cookie or as a bearer
token. The v1 family additionally accepts API keys, sent either in
X-API-Key or as a bearer token carrying the key prefix.
"""

import hashlib
import secrets
import uuid
from datetime import timedelta

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.errors import AuthenticationError
from backend.app.config import Settings
from backend.app.db.context import Principal
from backend.app.db.models import AuthSession, UserProfile, utcnow
from backend.app.services.api_keys import KEY_PREFIX, lookup_by_raw_key

SESSION_TOKEN_BYTES = 32


def hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


async def issue_session(
    session: AsyncSession, user_id: uuid.UUID, ttl: timedelta = timedelta(days=14)
) -> str:
    """Persist a new session for a user and return its raw token.

    Login flows live with the identity provider; this exists for seeding
    and for tests.
    """
    token = secrets.token_urlsafe(SESSION_TOKEN_BYTES)
    session.add(
        AuthSession(
            user_id=user_id,
            token_hash=hash_session_token(token),
            expires_at=utcnow() + ttl,
        )
    )
    await session.flush()
    return token


def _bearer_token(request: Request) -> str | None:
    """Extract a bearer token from the Authorization header.

    Raises:
        AuthenticationError: If the header is present but not "Bearer <token>"
    """
    authorization = request.headers.get("authorization")
    if not authorization:
        return None

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Invalid authorization header format")
    return token.strip()


async def _principal_from_session(session: AsyncSession, token: str) -> Principal | None:
    result = await session.execute(
        select(AuthSession, UserProfile)
        .join(UserProfile, UserProfile.user_id == AuthSession.user_id)
        .where(AuthSession.token_hash == hash_session_token(token))
    )
    row = result.first()
    if row is None:
        return None

    auth_session, profile = row
    if auth_session.revoked_at is not None or auth_session.expires_at <= utcnow():
        return None
    return Principal(user_id=profile.user_id, email=profile.email)


async def _principal_from_api_key(session: AsyncSession, raw_key: str) -> Principal | None:
    lookup = await lookup_by_raw_key(session, raw_key)
    if lookup is None:
        return None

    profile = await session.get(UserProfile, lookup.created_by)
    if profile is None:
        return None
    return Principal(
        user_id=profile.user_id,
        email=profile.email,
        auth_type="api_key",
        api_key_id=lookup.key_id,
        api_key_tenant_id=lookup.tenant_id,
        scopes=lookup.scopes,
    )


async def resolve_principal(
    request: Request,
    session: AsyncSession,
    settings: Settings,
    *,
    allow_api_key: bool = False,
) -> Principal:
    """Resolve the caller of a request.

    A session (cookie first, then bearer) is tried before an API key.

    Args:
        request: Incoming request
        session: Database session
        settings: Application settings (cookie name)
        allow_api_key: Whether this endpoint family accepts API keys

    Returns:
        The authenticated Principal

    Raises:
        AuthenticationError: If credentials are missing, malformed or unknown
    """
    bearer = _bearer_token(request)
    api_key = request.headers.get("x-api-key")
    if bearer and bearer.startswith(KEY_PREFIX):
        api_key = api_key or bearer
        bearer = None

    if api_key and not allow_api_key:
        raise AuthenticationError("API keys are not accepted for this endpoint")

    session_token = request.cookies.get(settings.session_cookie_name) or bearer
    if session_token:
        principal = await _principal_from_session(session, session_token)
        if principal is not None:
            return principal
        if not api_key:
            raise AuthenticationError("Invalid or expired session")

    if api_key:
        principal = await _principal_from_api_key(session, api_key)
        if principal is None:
            raise AuthenticationError("Invalid or expired API key")
        return principal

    raise AuthenticationError()
