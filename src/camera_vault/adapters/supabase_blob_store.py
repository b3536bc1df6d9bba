"""Photo store keeping a CSV index per user in Supabase Storage."""

import asyncio
import csv
import io
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar
from uuid import uuid4

import httpx
from storage3.utils import StorageException
from supabase import Client

from camera_vault.domain.errors import (
    InvalidInput,
    NotFound,
    PermissionDenied,
    StorageUnavailable,
    SubscriptionUnsupported,
)
from camera_vault.domain.photos import PhotoRecord, sort_newest_first, utc_now
from camera_vault.services.photos import (
    OnChange,
    OnError,
    PhotoStore,
    Subscription,
    validate_new_photo,
    validate_photo_id,
    validate_user_id,
)

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("id", "timestamp", "imageData")
INDEX_FILENAME = "camera_images.csv"
# base64 frames exceed the csv module's default field limit
_CSV_FIELD_LIMIT = 2**31 - 1
_HTTP_NOT_FOUND = 404
_HTTP_FORBIDDEN = {401, 403}

csv.field_size_limit(_CSV_FIELD_LIMIT)


@dataclass
class SupabaseBlobPhotoStore(PhotoStore):
    """Whole-object CSV index stored as a single blob per partition.

    Every write downloads the index, edits it and uploads it again. Writes
    from this process to the same object are serialized; writers in other
    processes race and the last upload wins.
    """

    supports_subscribe: ClassVar[bool] = False

    client: Client
    bucket: str = "camera-images"
    app_id: str = "default-app-id"
    clock: Callable[[], datetime] = utc_now
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict)

    def object_path(self, user_id: str) -> str:
        """Return the blob path holding a user's index."""
        if "/" in user_id or "\\" in user_id or ".." in user_id:
            raise InvalidInput(f"user_id {user_id!r} cannot be used as a path segment")
        return f"{self.app_id}/{user_id}/{INDEX_FILENAME}"

    async def create_photo(self, user_id: str, image_data: str) -> PhotoRecord:
        """Append a row to the user's index."""
        validate_new_photo(user_id, image_data)
        path = self.object_path(user_id)
        async with self._lock(path):
            records = await self._read_index(path, user_id)
            record = PhotoRecord(
                id=str(uuid4()),
                user_id=user_id,
                image_data=image_data,
                created_at=self.clock(),
            )
            records.append(record)
            await self._write_index(path, records)
        logger.info("Index %s now holds %d photos", path, len(records))
        return record

    async def list_photos(self, user_id: str) -> list[PhotoRecord]:
        """Download and parse the index."""
        validate_user_id(user_id)
        path = self.object_path(user_id)
        return sort_newest_first(await self._read_index(path, user_id))

    async def get_photo(self, user_id: str, photo_id: str) -> PhotoRecord:
        """Return one row of the index."""
        validate_user_id(user_id)
        validate_photo_id(photo_id)
        for record in await self._read_index(self.object_path(user_id), user_id):
            if record.id == photo_id:
                return record
        raise NotFound(f"Photo {photo_id} not found")

    async def delete_photo(self, user_id: str, photo_id: str) -> None:
        """Drop a row and upload the rewritten index."""
        validate_user_id(user_id)
        validate_photo_id(photo_id)
        path = self.object_path(user_id)
        async with self._lock(path):
            records = await self._read_index(path, user_id)
            remaining = [record for record in records if record.id != photo_id]
            if len(remaining) == len(records):
                raise NotFound(f"Photo {photo_id} not found")
            await self._write_index(path, remaining)

    async def subscribe(
        self, user_id: str, on_change: OnChange, on_error: OnError | None = None
    ) -> Subscription:
        """Blob indexes only support point-in-time listing."""
        raise SubscriptionUnsupported("The blob backend has no live feed")

    async def close(self) -> None:
        """Nothing to release."""
        return None

    def _lock(self, path: str) -> asyncio.Lock:
        return self._locks.setdefault(path, asyncio.Lock())

    async def _read_index(self, path: str, user_id: str) -> list[PhotoRecord]:
        bucket = self.client.storage.from_(self.bucket)
        try:
            payload = await asyncio.to_thread(bucket.download, path)
        except StorageException as exc:
            if _is_missing(exc):
                return []
            raise _storage_error("download", path, exc) from exc
        except httpx.HTTPError as exc:
            raise StorageUnavailable(f"Supabase Storage is unreachable: {exc}") from exc
        return parse_index(payload, user_id)

    async def _write_index(self, path: str, records: list[PhotoRecord]) -> None:
        bucket = self.client.storage.from_(self.bucket)
        try:
            await asyncio.to_thread(
                bucket.upload,
                path,
                serialize_index(records),
                {"content-type": "text/csv", "x-upsert": "true"},
            )
        except StorageException as exc:
            raise _storage_error("upload", path, exc) from exc
        except httpx.HTTPError as exc:
            raise StorageUnavailable(f"Supabase Storage is unreachable: {exc}") from exc


def serialize_index(records: list[PhotoRecord]) -> bytes:
    """Render records, in insertion order, as CSV bytes."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for record in records:
        writer.writerow([record.id, record.created_at.isoformat(), record.image_data])
    return buffer.getvalue().encode("utf-8")


def parse_index(payload: bytes, user_id: str) -> list[PhotoRecord]:
    """Parse CSV bytes into records, keeping file order."""
    try:
        text = payload.decode("utf-8")
        if not text.strip():
            return []
        reader = csv.DictReader(io.StringIO(text))
        return [
            PhotoRecord(
                id=row["id"],
                user_id=user_id,
                image_data=row["imageData"],
                created_at=datetime.fromisoformat(row["timestamp"]),
            )
            for row in reader
            if row.get("id")
        ]
    except (KeyError, TypeError, ValueError, csv.Error) as exc:
        raise StorageUnavailable(f"Photo index is corrupt: {exc}") from exc


def _status_of(exc: StorageException) -> int | None:
    status: Any = getattr(exc, "status", None)
    if status is None and exc.args and isinstance(exc.args[0], dict):
        status = exc.args[0].get("statusCode")
    try:
        return int(status)
    except (TypeError, ValueError):
        return None


def _is_missing(exc: StorageException) -> bool:
    """Whether the index object is absent, as opposed to the bucket."""
    text = str(exc).lower()
    if "bucket" in text:
        return False
    return _status_of(exc) == _HTTP_NOT_FOUND or "not found" in text


def _storage_error(
    action: str, path: str, exc: StorageException
) -> PermissionDenied | StorageUnavailable:
    if _status_of(exc) in _HTTP_FORBIDDEN:
        return PermissionDenied(f"Supabase Storage {action} of {path} denied")
    return StorageUnavailable(f"Supabase Storage {action} of {path} failed: {exc}")
