"""Supabase-backed profile repository."""

import asyncio
from dataclasses import dataclass

from supabase import Client

from photodump.domain.models import Profile
from photodump.services.profiles import ProfileRepository

_COLUMNS = "id, display_name, email, photo_url, updated_at"


def _to_profile(row: dict[str, object]) -> Profile:
    return Profile(
        id=str(row["id"]),
        display_name=row.get("display_name"),
        email=row.get("email"),
        photo_url=row.get("photo_url"),
        updated_at=row.get("updated_at"),
    )


@dataclass
class SupabaseProfileRepository(ProfileRepository):
    """Supabase implementation for profile persistence."""

    client: Client

    async def get_profile(self, user_id: str) -> Profile | None:
        """Return the profile row for a user id, if present."""
        query = self.client.table("profiles").select(_COLUMNS).eq("id", user_id)
        response = await asyncio.to_thread(query.execute)
        if response.data:
            return _to_profile(response.data[0])
        return None

    async def upsert_profile(self, row: dict[str, object]) -> Profile:
        """Insert or update a profile keyed by id and return it."""
        query = self.client.table("profiles").upsert(row)
        response = await asyncio.to_thread(query.execute)
        if not response.data:
            raise RuntimeError("Failed to upsert profile in Supabase")
        return _to_profile(response.data[0])

    async def update_profile(self, user_id: str, values: dict[str, object]) -> None:
        """Update profile columns for a user id."""
        query = self.client.table("profiles").update(values).eq("id", user_id)
        await asyncio.to_thread(query.execute)
