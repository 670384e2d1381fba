"""Dev seeding helper: a demo user, tenant and session token."""

import argparse
import asyncio
import logging
import uuid
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.auth import issue_session
from backend.app.config import get_settings
from backend.app.db.engine import create_async_engine_from_settings, create_session_factory
from backend.app.db.models import Tenant, TenantUser, UserProfile
from backend.app.models.common import MembershipStatus, Role
from backend.app.utils.logging import configure_logging

logger = logging.getLogger(__name__)

# Fixed IDs so the seed is idempotent
DEV_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")
DEV_TENANT_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
DEV_TENANT_SLUG = "devtenant"


async def seed_dev_tenant_and_user(session: AsyncSession) -> str:
    """Seed the dev user as owner of the dev tenant.

    This function is idempotent - safe to run multiple times. A fresh
    session token is issued on every run.

    Returns:
        Raw session token for the dev user
    """
    user = await session.get(UserProfile, DEV_USER_ID)
    if not user:
        print(f"Creating dev user with id {DEV_USER_ID}...")
        session.add(
            UserProfile(user_id=DEV_USER_ID, email="dev@example.com", display_name="Dev User")
        )
    else:
        print(f"Dev user already exists: {user.email}")

    tenant = await session.get(Tenant, DEV_TENANT_ID)
    if not tenant:
        print(f"Creating dev tenant '{DEV_TENANT_SLUG}'...")
        session.add(Tenant(tenant_id=DEV_TENANT_ID, slug=DEV_TENANT_SLUG, name="Dev Tenant"))
    else:
        print(f"Dev tenant already exists: {tenant.slug}")
    await session.flush()

    result = await session.execute(
        select(TenantUser).where(
            TenantUser.tenant_id == DEV_TENANT_ID, TenantUser.user_id == DEV_USER_ID
        )
    )
    if result.scalar_one_or_none() is None:
        session.add(
            TenantUser(
                tenant_id=DEV_TENANT_ID,
                user_id=DEV_USER_ID,
                role=Role.owner.value,
                status=MembershipStatus.active.value,
            )
        )

    token = await issue_session(session, DEV_USER_ID)
    await session.commit()
    return token


def write_token_file(path: Path, token: str) -> None:
    """Write the session token to a file readable only by its owner."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(mode=0o600, exist_ok=True)
    path.chmod(0o600)
    path.write_text(f"{token}\n")


async def main(token_file: Path | None = None) -> None:
    engine = create_async_engine_from_settings(get_settings())
    try:
        async with create_session_factory(engine)() as session:
            token = await seed_dev_tenant_and_user(session)
    finally:
        await engine.dispose()

    if token_file is not None:
        write_token_file(token_file, token)
        print(f"Dev seeding complete. Session token written to {token_file}")
    else:
        logger.debug("Dev session token: %s", token)
        print("Dev seeding complete. Pass --token-file to save the session token.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the dev tenant and user")
    parser.add_argument("--token-file", type=Path, help="Write the dev session token to this file")
    args = parser.parse_args()
    configure_logging(get_settings().log_level)
    asyncio.run(main(args.token_file))
