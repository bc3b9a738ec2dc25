"""Supabase Storage adapter."""

import asyncio
from dataclasses import dataclass

from supabase import Client

from photodump.domain.models import StoredObject
from photodump.services.gallery import StorageClient


@dataclass
class SupabaseStorageClient(StorageClient):
    """Supabase Storage implementation for bucket operations."""

    client: Client

    async def list_objects(
        self,
        bucket: str,
        prefix: str,
        *,
        limit: int,
        offset: int,
        sort_by: tuple[str, str],
    ) -> list[StoredObject]:
        """List objects under a prefix."""
        column, order = sort_by
        rows = await asyncio.to_thread(
            self.client.storage.from_(bucket).list,
            prefix,
            {
                "limit": limit,
                "offset": offset,
                "sortBy": {"column": column, "order": order},
            },
        )
        return [
            StoredObject(
                id=row.get("id"),
                name=row["name"],
                created_at=row.get("created_at"),
            )
            for row in rows
        ]

    async def upload(
        self,
        bucket: str,
        key: str,
        content: bytes,
        *,
        content_type: str | None,
        upsert: bool,
    ) -> None:
        """Upload bytes to a bucket key."""
        file_options = {"upsert": "true" if upsert else "false"}
        if content_type:
            file_options["content-type"] = content_type
        await asyncio.to_thread(
            self.client.storage.from_(bucket).upload,
            path=key,
            file=content,
            file_options=file_options,
        )

    async def remove(self, bucket: str, keys: list[str]) -> None:
        """Remove objects from a bucket."""
        await asyncio.to_thread(self.client.storage.from_(bucket).remove, keys)

    async def create_signed_url(self, bucket: str, key: str, expires_in: int) -> str:
        """Return a signed URL valid for expires_in seconds."""
        result = await asyncio.to_thread(
            self.client.storage.from_(bucket).create_signed_url, key, expires_in
        )
        url = result.get("signedUrl") or result.get("signedURL")
        if not url:
            raise RuntimeError(f"No signed URL returned for {key}")
        return url

    async def get_public_url(self, bucket: str, key: str) -> str:
        """Return the public URL of an object."""
        return self.client.storage.from_(bucket).get_public_url(key)
