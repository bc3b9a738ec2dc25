"""Gallery synchronization against object storage."""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from photodump.domain.errors import (
    ImageDeleteFailure,
    ImageListFailure,
    ImageSignFailure,
    ImageUploadFailure,
)
from photodump.domain.models import ImageEntry, StoredObject, UploadFile

_logger = logging.getLogger(__name__)


class StorageClient(Protocol):
    """Interface for object storage operations."""

    async def list_objects(
        self,
        bucket: str,
        prefix: str,
        *,
        limit: int,
        offset: int,
        sort_by: tuple[str, str],
    ) -> list[StoredObject]:
        """List object metadata under a prefix."""

    async def upload(
        self,
        bucket: str,
        key: str,
        content: bytes,
        *,
        content_type: str | None,
        upsert: bool,
    ) -> None:
        """Store bytes under a key. Fails on an existing key unless upsert is set."""

    async def remove(self, bucket: str, keys: list[str]) -> None:
        """Delete objects by key."""

    async def create_signed_url(self, bucket: str, key: str, expires_in: int) -> str:
        """Return a time-limited URL for one object."""

    async def get_public_url(self, bucket: str, key: str) -> str:
        """Return the stable public URL for one object."""


def current_millis() -> int:
    """Return the wall clock in milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass
class GallerySynchronizer:
    """Keeps a local snapshot of the user's photos in step with storage."""

    storage: StorageClient
    bucket: str = "photos"
    page_size: int = 100
    signed_url_ttl_seconds: int = 60
    clock: Callable[[], int] = current_millis
    _images: list[ImageEntry] = field(default_factory=list)
    _generation: int = 0

    @property
    def images(self) -> tuple[ImageEntry, ...]:
        """Return the current gallery snapshot, newest first."""
        return tuple(self._images)

    def find(self, image_id: str) -> ImageEntry | None:
        """Return the entry with the given id, if loaded."""
        for image in self._images:
            if image.id == image_id:
                return image
        return None

    def clear(self) -> None:
        """Forget the local snapshot and disown results of calls still in flight."""
        self._images = []
        self._generation += 1

    async def load_all(self, user_id: str) -> list[ImageEntry]:
        """Replace the snapshot with a freshly signed listing of the user's photos."""
        return await self._load(user_id, self._generation)

    async def _load(self, user_id: str, generation: int) -> list[ImageEntry]:
        try:
            objects = await self.storage.list_objects(
                self.bucket,
                user_id,
                limit=self.page_size,
                offset=0,
                sort_by=("created_at", "desc"),
            )
        except Exception as exc:
            raise ImageListFailure(str(exc)) from exc

        results = await asyncio.gather(
            *(self._sign(user_id, stored) for stored in objects),
            return_exceptions=True,
        )
        images: list[ImageEntry] = []
        for stored, result in zip(objects, results, strict=True):
            if isinstance(result, ImageSignFailure):
                _logger.warning(
                    "Dropping image without signed URL: name=%s error=%s",
                    stored.name,
                    result.detail,
                )
                continue
            if isinstance(result, BaseException):
                raise result
            images.append(result)
        if generation != self._generation:
            _logger.info("Discarding gallery listing after clear: user_id=%s", user_id)
            return list(images)
        self._images = images
        _logger.info("Gallery loaded: user_id=%s images=%s", user_id, len(images))
        return list(images)

    async def upload(self, user_id: str, files: Sequence[UploadFile]) -> list[ImageEntry]:
        """Upload a batch of files and reload the gallery from storage."""
        generation = self._generation
        keys = [self.storage_key(user_id, upload) for upload in files]
        results = await asyncio.gather(
            *(
                self.storage.upload(
                    self.bucket,
                    key,
                    upload.content,
                    content_type=upload.content_type,
                    upsert=False,
                )
                for key, upload in zip(keys, files, strict=True)
            ),
            return_exceptions=True,
        )
        for upload, result in zip(files, results, strict=True):
            if isinstance(result, Exception):
                raise ImageUploadFailure(f"{upload.name}: {result}") from result
        _logger.info("Uploaded images: user_id=%s count=%s", user_id, len(files))
        return await self._load(user_id, generation)

    async def delete(
        self,
        user_id: str,
        image: ImageEntry,
        confirm: Callable[[ImageEntry], bool],
    ) -> bool:
        """Remove one image after confirmation. Return False if not confirmed."""
        if not confirm(image):
            return False
        try:
            await self.storage.remove(self.bucket, [f"{user_id}/{image.name}"])
        except Exception as exc:
            raise ImageDeleteFailure(str(exc)) from exc
        self._images = [entry for entry in self._images if entry.id != image.id]
        return True

    def storage_key(self, user_id: str, upload: UploadFile) -> str:
        """Return the storage key for a new gallery upload."""
        return f"{user_id}/{self.clock()}-{upload.name}"

    async def _sign(self, user_id: str, stored: StoredObject) -> ImageEntry:
        try:
            url = await self.storage.create_signed_url(
                self.bucket,
                f"{user_id}/{stored.name}",
                self.signed_url_ttl_seconds,
            )
        except Exception as exc:
            raise ImageSignFailure(str(exc)) from exc
        return ImageEntry(id=stored.id or stored.name, name=stored.name, public_url=url)
