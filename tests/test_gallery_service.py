"""Tests for gallery synchronization."""

import asyncio
import logging
from dataclasses import dataclass, field

import pytest

from photodump.domain.errors import (
    ImageDeleteFailure,
    ImageListFailure,
    ImageUploadFailure,
)
from photodump.domain.models import ImageEntry, UploadFile
from photodump.services.gallery import GallerySynchronizer
from tests.conftest import InMemoryStorageClient


@dataclass
class ReversedSigningStorage(InMemoryStorageClient):
    """Storage whose signed URLs resolve in reverse listing order."""

    completed: list[str] = field(default_factory=list)

    async def create_signed_url(self, bucket: str, key: str, expires_in: int) -> str:
        index = int(key.rsplit("-", 1)[-1].split(".")[0])
        await asyncio.sleep(0.01 * (index + 1))
        self.completed.append(key)
        return await super().create_signed_url(bucket, key, expires_in)


def _always(_image: ImageEntry) -> bool:
    return True


def _never(_image: ImageEntry) -> bool:
    return False


def test_load_all_keeps_listing_order_when_signing_out_of_order() -> None:
    storage = ReversedSigningStorage()
    for index in range(5):
        storage.seed("photos", f"user-1/100{index}-photo-{index}.jpg")
    gallery = GallerySynchronizer(storage)

    images = asyncio.run(gallery.load_all("user-1"))

    assert [image.name for image in images] == [
        f"100{index}-photo-{index}.jpg" for index in reversed(range(5))
    ]
    assert storage.completed[0].endswith("photo-0.jpg")
    assert gallery.images == tuple(images)
    assert images[0].public_url.endswith("expires_in=60")


def test_load_all_drops_unsigned_entries_and_logs(
    storage: InMemoryStorageClient, caplog, monkeypatch
) -> None:
    monkeypatch.setattr(logging.getLogger("photodump"), "propagate", True)
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        storage.seed("photos", f"user-1/{name}")
    storage.fail_sign_names = {"b.jpg"}
    gallery = GallerySynchronizer(storage)

    with caplog.at_level(logging.WARNING, logger="photodump.services.gallery"):
        images = asyncio.run(gallery.load_all("user-1"))

    assert [image.name for image in images] == ["c.jpg", "a.jpg"]
    assert "b.jpg" in caplog.text


def test_load_all_list_failure_keeps_previous_snapshot(
    storage: InMemoryStorageClient,
) -> None:
    storage.seed("photos", "user-1/a.jpg")
    gallery = GallerySynchronizer(storage)
    asyncio.run(gallery.load_all("user-1"))
    storage.fail_list = True

    with pytest.raises(ImageListFailure) as excinfo:
        asyncio.run(gallery.load_all("user-1"))

    assert str(excinfo.value) == "Image fetch failed: list denied"
    assert [image.name for image in gallery.images] == ["a.jpg"]


def test_load_all_only_reads_the_users_prefix(storage: InMemoryStorageClient) -> None:
    storage.seed("photos", "user-1/mine.jpg")
    storage.seed("photos", "user-2/theirs.jpg")
    gallery = GallerySynchronizer(storage)

    images = asyncio.run(gallery.load_all("user-1"))

    assert [image.name for image in images] == ["mine.jpg"]


def test_upload_two_files_reloads_once_newest_first(
    storage: InMemoryStorageClient,
) -> None:
    ticks = iter([1000, 1001])
    gallery = GallerySynchronizer(storage, clock=lambda: next(ticks))
    files = [
        UploadFile(name="first.jpg", content=b"1", content_type="image/jpeg"),
        UploadFile(name="second.png", content=b"2", content_type="image/png"),
    ]

    images = asyncio.run(gallery.upload("user-1", files))

    assert storage.list_calls == 1
    assert [image.name for image in images] == ["1001-second.png", "1000-first.jpg"]
    stored = storage.buckets["photos"]["user-1/1000-first.jpg"]
    assert stored.content_type == "image/jpeg"


def test_upload_collision_fails_batch_and_keeps_snapshot(
    storage: InMemoryStorageClient,
) -> None:
    storage.seed("photos", "user-1/old.jpg")
    gallery = GallerySynchronizer(storage, clock=lambda: 42)
    asyncio.run(gallery.load_all("user-1"))
    files = [
        UploadFile(name="same.jpg", content=b"1"),
        UploadFile(name="same.jpg", content=b"2"),
    ]

    with pytest.raises(ImageUploadFailure) as excinfo:
        asyncio.run(gallery.upload("user-1", files))

    assert "same.jpg" in str(excinfo.value)
    assert storage.list_calls == 1
    assert [image.name for image in gallery.images] == ["old.jpg"]

    asyncio.run(gallery.load_all("user-1"))
    assert [image.name for image in gallery.images] == ["42-same.jpg", "old.jpg"]


def test_upload_waits_for_every_file_before_failing(
    storage: InMemoryStorageClient,
) -> None:
    storage.fail_upload_names = {"bad.jpg"}
    gallery = GallerySynchronizer(storage, clock=lambda: 7)
    files = [
        UploadFile(name="bad.jpg", content=b"1"),
        UploadFile(name="good.jpg", content=b"2"),
    ]

    with pytest.raises(ImageUploadFailure, match="bad.jpg"):
        asyncio.run(gallery.upload("user-1", files))

    assert "user-1/7-good.jpg" in storage.buckets["photos"]
    assert storage.list_calls == 0


def test_delete_removes_only_the_target(storage: InMemoryStorageClient) -> None:
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        storage.seed("photos", f"user-1/{name}")
    gallery = GallerySynchronizer(storage)
    asyncio.run(gallery.load_all("user-1"))
    target = gallery.find("obj-1")
    assert target is not None

    deleted = asyncio.run(gallery.delete("user-1", target, _always))

    assert deleted is True
    assert storage.removed == ["user-1/b.jpg"]
    assert [image.name for image in gallery.images] == ["c.jpg", "a.jpg"]
    assert storage.list_calls == 1


def test_delete_failure_leaves_state_untouched(storage: InMemoryStorageClient) -> None:
    storage.seed("photos", "user-1/a.jpg")
    gallery = GallerySynchronizer(storage)
    asyncio.run(gallery.load_all("user-1"))
    storage.fail_remove = True

    with pytest.raises(ImageDeleteFailure, match="remove denied"):
        asyncio.run(gallery.delete("user-1", gallery.images[0], _always))

    assert [image.name for image in gallery.images] == ["a.jpg"]


def test_delete_without_confirmation_does_nothing(
    storage: InMemoryStorageClient,
) -> None:
    storage.seed("photos", "user-1/a.jpg")
    gallery = GallerySynchronizer(storage)
    asyncio.run(gallery.load_all("user-1"))

    deleted = asyncio.run(gallery.delete("user-1", gallery.images[0], _never))

    assert deleted is False
    assert storage.removed == []
    assert len(gallery.images) == 1


@dataclass
class GatedSigningStorage(InMemoryStorageClient):
    """Storage whose signing waits until the test opens the gate."""

    gate: asyncio.Event | None = None

    async def create_signed_url(self, bucket: str, key: str, expires_in: int) -> str:
        await self.gate.wait()
        return await super().create_signed_url(bucket, key, expires_in)


def test_listing_finished_after_clear_is_discarded() -> None:
    storage = GatedSigningStorage()
    storage.seed("photos", "user-1/a.jpg")
    gallery = GallerySynchronizer(storage)

    async def scenario() -> list[ImageEntry]:
        storage.gate = asyncio.Event()
        loading = asyncio.create_task(gallery.load_all("user-1"))
        await asyncio.sleep(0.01)
        gallery.clear()
        storage.gate.set()
        return await loading

    returned = asyncio.run(scenario())

    assert [image.name for image in returned] == ["a.jpg"]
    assert gallery.images == ()


def test_upload_finished_after_clear_does_not_repopulate() -> None:
    storage = GatedSigningStorage()
    gallery = GallerySynchronizer(storage, clock=lambda: 1000)

    async def scenario() -> None:
        storage.gate = asyncio.Event()
        uploading = asyncio.create_task(
            gallery.upload("user-1", [UploadFile(name="a.jpg", content=b"a")])
        )
        await asyncio.sleep(0.01)
        gallery.clear()
        storage.gate.set()
        await uploading

    asyncio.run(scenario())

    assert "user-1/1000-a.jpg" in storage.buckets["photos"]
    assert gallery.images == ()
