"""The caller's own user profile."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from backend.app.api.errors import NotFoundError
from backend.app.db.models import UserProfile
from backend.app.services.base import BaseEntityService

UPDATABLE_FIELDS = ("display_name", "first_name", "last_name", "phone", "timezone", "avatar_url")


class UserProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: uuid.UUID
    email: str
    display_name: str | None
    first_name: str | None
    last_name: str | None
    phone: str | None
    timezone: str
    avatar_url: str | None
    preferences: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class UserProfileService(BaseEntityService):
    """Profile reads and updates, always for the calling user only."""

    async def _load(self) -> UserProfile:
        profile = await self.session.get(UserProfile, self.user_id)
        if profile is None:
            raise NotFoundError("User profile not found")
        return profile

    async def get_profile(self) -> UserProfileOut:
        return UserProfileOut.model_validate(await self._load())

    async def update_profile(self, updates: dict[str, Any]) -> UserProfileOut:
        """Apply a partial update.

        Args:
            updates: Only the fields the caller sent; preferences are merged
                key by key into the stored preferences

        Returns:
            The updated profile
        """
        profile = await self._load()

        for field in UPDATABLE_FIELDS:
            if field in updates:
                setattr(profile, field, updates[field])
        if not profile.timezone:
            profile.timezone = "UTC"
        if updates.get("preferences") is not None:
            profile.preferences = {**(profile.preferences or {}), **updates["preferences"]}

        await self.session.flush()
        return UserProfileOut.model_validate(profile)
