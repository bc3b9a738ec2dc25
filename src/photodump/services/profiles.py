"""Profile lifecycle and editing."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Protocol

from photodump.domain.errors import (
    AvatarUploadFailure,
    ProfileCreateFailure,
    ProfileFetchFailure,
    ProfileUpdateFailure,
)
from photodump.domain.models import AuthUser, Profile, UploadFile
from photodump.services.gallery import StorageClient, current_millis

_logger = logging.getLogger(__name__)


class ProfileRepository(Protocol):
    """Persistence interface for profile rows."""

    async def get_profile(self, user_id: str) -> Profile | None:
        """Return the profile for a user id, if present."""

    async def upsert_profile(self, row: dict[str, object]) -> Profile:
        """Insert or update a profile keyed by id and return the stored row."""

    async def update_profile(self, user_id: str, values: dict[str, object]) -> None:
        """Update columns of an existing profile."""


def default_display_name(user: AuthUser) -> str:
    """Derive a display name from identity provider metadata."""
    metadata = user.user_metadata
    for key in ("full_name", "name"):
        value = metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value
    local_part = (user.email or "").split("@")[0]
    return local_part or "User"


def default_photo_url(user: AuthUser) -> str | None:
    """Return the provider avatar URL, if one is present."""
    for key in ("avatar_url", "picture"):
        value = user.user_metadata.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


@dataclass
class ProfileManager:
    """Loads, creates and edits the signed-in user's profile."""

    repository: ProfileRepository
    storage: StorageClient
    avatars_bucket: str = "avatars"
    clock: Callable[[], int] = current_millis
    user: AuthUser | None = None
    profile: Profile | None = None
    is_uploading_avatar: bool = False
    _generation: int = 0

    def clear(self) -> None:
        """Forget the cached user and profile and disown calls still in flight."""
        self.user = None
        self.profile = None
        self.is_uploading_avatar = False
        self._generation += 1

    async def ensure_profile(self, user: AuthUser) -> Profile:
        """Adopt the stored profile for the user, creating a default one if missing."""
        self.user = user
        generation = self._generation
        try:
            existing = await self.repository.get_profile(user.id)
        except Exception as exc:
            raise ProfileFetchFailure(str(exc)) from exc
        if existing is not None:
            self._adopt(generation, existing)
            return existing

        row = {
            "id": user.id,
            "display_name": default_display_name(user),
            "email": user.email,
            "photo_url": default_photo_url(user),
        }
        try:
            created = await self.repository.upsert_profile(row)
        except Exception as exc:
            raise ProfileCreateFailure(str(exc)) from exc
        _logger.info("Created profile: user_id=%s", user.id)
        self._adopt(generation, created)
        return created

    async def update_display_name(self, new_name: str) -> Profile:
        """Persist a new display name and update the cached profile."""
        user_id = self._require_user(ProfileUpdateFailure)
        generation = self._generation
        updated_at = _utc_now_iso()
        try:
            await self.repository.update_profile(
                user_id, {"display_name": new_name, "updated_at": updated_at}
            )
        except Exception as exc:
            raise ProfileUpdateFailure(str(exc)) from exc
        profile = self._cached(user_id, display_name=new_name, updated_at=updated_at)
        self._adopt(generation, profile)
        return profile

    async def update_avatar(self, upload: UploadFile) -> Profile:
        """Replace the user's avatar and point the profile at it."""
        user_id = self._require_user(AvatarUploadFailure)
        key = f"{user_id}.{upload.extension}"
        generation = self._generation
        self.is_uploading_avatar = True
        try:
            await self.storage.upload(
                self.avatars_bucket,
                key,
                upload.content,
                content_type=upload.content_type,
                upsert=True,
            )
            public_url = await self.storage.get_public_url(self.avatars_bucket, key)
            photo_url = f"{public_url}?t={self.clock()}"
            updated_at = _utc_now_iso()
            await self.repository.update_profile(
                user_id, {"photo_url": photo_url, "updated_at": updated_at}
            )
        except Exception as exc:
            raise AvatarUploadFailure(str(exc)) from exc
        finally:
            if generation == self._generation:
                self.is_uploading_avatar = False
        profile = self._cached(user_id, photo_url=photo_url, updated_at=updated_at)
        self._adopt(generation, profile)
        return profile

    def _require_user(self, failure: type[Exception]) -> str:
        if self.user is None:
            raise failure("Not signed in")
        return self.user.id

    def _adopt(self, generation: int, profile: Profile) -> None:
        if generation != self._generation:
            _logger.info("Discarding profile result after clear: user_id=%s", profile.id)
            return
        self.profile = profile

    def _cached(self, user_id: str, **changes: object) -> Profile:
        current = self.profile or Profile(
            id=user_id,
            display_name=None,
            email=self.user.email if self.user else None,
            photo_url=None,
        )
        return replace(current, **changes)
