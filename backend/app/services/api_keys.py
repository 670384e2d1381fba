"""API key issuance, listing, revocation and lookup."""

import hashlib
import hmac
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.errors import NotFoundError, ValidationError
from backend.app.db.models import ApiKey, utcnow
from backend.app.models.common import Role
from backend.app.services.base import BaseEntityService
from backend.app.services.scopes import COMMS_SCOPES_FULL, is_known_scope

KEY_PREFIX = "sp_live_"
# sp_live_ plus 12 secret characters, unique per key and used for lookup
PREFIX_DISPLAY_LENGTH = 20
SECRET_BYTES = 24


class ApiKeyOut(BaseModel):
    """API key as listed; never carries the secret."""

    id: uuid.UUID
    name: str
    key_prefix: str
    scopes: list[str]
    expires_at: datetime | None
    last_used_at: datetime | None
    created_at: datetime


class ApiKeyCreated(ApiKeyOut):
    """Freshly created key. The raw key is only ever returned here."""

    key: str


@dataclass(frozen=True)
class ApiKeyLookup:
    """Auth context carried by a valid raw key."""

    key_id: uuid.UUID
    tenant_id: uuid.UUID
    created_by: uuid.UUID
    scopes: tuple[str, ...]


def hash_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def generate_raw_key(prefix: str = KEY_PREFIX) -> tuple[str, str]:
    """Generate a raw key and its lookup prefix.

    Returns:
        (raw key, display/lookup prefix)
    """
    raw = prefix + secrets.token_urlsafe(SECRET_BYTES)
    return raw, raw[:PREFIX_DISPLAY_LENGTH]


def _to_out(row: ApiKey) -> ApiKeyOut:
    return ApiKeyOut(
        id=row.key_id,
        name=row.name,
        key_prefix=row.key_prefix,
        scopes=list(row.scopes or []),
        expires_at=row.expires_at,
        last_used_at=row.last_used_at,
        created_at=row.created_at,
    )


async def lookup_by_raw_key(
    session: AsyncSession, raw_key: str, prefix: str = KEY_PREFIX
) -> ApiKeyLookup | None:
    """Resolve a raw API key to its auth context.

    Matches on the stored prefix, rejects expired keys, compares hashes in
    constant time and stamps last_used_at on success.

    Args:
        session: Database session
        raw_key: Key as presented by the caller
        prefix: Expected key prefix

    Returns:
        ApiKeyLookup, or None if the key is unknown, expired or revoked
    """
    if not raw_key.startswith(prefix) or len(raw_key) < PREFIX_DISPLAY_LENGTH:
        return None

    result = await session.execute(
        select(ApiKey).where(ApiKey.key_prefix == raw_key[:PREFIX_DISPLAY_LENGTH])
    )
    row = result.scalar_one_or_none()
    if row is None:
        return None

    now = utcnow()
    if row.expires_at is not None and row.expires_at < now:
        return None
    if not hmac.compare_digest(hash_key(raw_key), row.key_hash):
        return None

    await session.execute(update(ApiKey).where(ApiKey.key_id == row.key_id).values(last_used_at=now))

    return ApiKeyLookup(
        key_id=row.key_id,
        tenant_id=row.tenant_id,
        created_by=row.created_by,
        scopes=tuple(row.scopes or []),
    )


class ApiKeyService(BaseEntityService):
    """Owner-only management of a tenant's API keys."""

    async def list_keys(self) -> list[ApiKeyOut]:
        self.require_role(Role.owner, message="Only tenant owners can list API keys")

        result = await self.session.execute(
            select(ApiKey)
            .where(ApiKey.tenant_id == self.tenant_id)
            .order_by(ApiKey.created_at.desc())
        )
        return [_to_out(row) for row in result.scalars()]

    async def create_key(
        self,
        name: str,
        scopes: list[str] | None = None,
        expires_at: datetime | None = None,
    ) -> ApiKeyCreated:
        """Create an API key on behalf of the calling owner.

        Args:
            name: Human-readable label
            scopes: Granted scopes; defaults to the full comms set
            expires_at: Optional expiry (naive UTC)

        Returns:
            The created key including its raw secret

        Raises:
            AuthorizationError: If the caller is not an owner
            ValidationError: If a scope is not recognized
        """
        self.require_role(Role.owner, message="Only tenant owners can create API keys")

        granted = list(scopes) if scopes else list(COMMS_SCOPES_FULL)
        unknown = [s for s in granted if not is_known_scope(s)]
        if unknown:
            raise ValidationError(
                "Unknown API key scopes",
                details=[
                    {"field": "scopes", "message": f"Unknown scope: {s}", "type": "scope"}
                    for s in unknown
                ],
            )

        raw, prefix = generate_raw_key()
        row = ApiKey(
            tenant_id=self.tenant_id,
            created_by=self.user_id,
            name=name,
            key_prefix=prefix,
            key_hash=hash_key(raw),
            scopes=granted,
            expires_at=expires_at,
        )
        self.session.add(row)
        await self.session.flush()

        return ApiKeyCreated(**_to_out(row).model_dump(), key=raw)

    async def revoke_key(self, key_id: uuid.UUID) -> None:
        """Delete a key so it can no longer authenticate.

        Raises:
            AuthorizationError: If the caller is not an owner
            NotFoundError: If the key does not belong to this tenant
        """
        self.require_role(Role.owner, message="Only tenant owners can revoke API keys")

        result = await self.session.execute(
            delete(ApiKey).where(ApiKey.key_id == key_id, ApiKey.tenant_id == self.tenant_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("API key not found")
