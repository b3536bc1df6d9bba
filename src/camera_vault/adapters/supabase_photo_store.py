"""Supabase-backed photo store with a polled live feed."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from camera_vault.domain.errors import (
    NotFound,
    PermissionDenied,
    PhotoStoreError,
    StorageUnavailable,
)
from camera_vault.domain.photos import PhotoRecord
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

_COLUMNS = "id, user_id, image_b64, created_at"
# insufficient_privilege, RLS violation, JWT rejected
_PERMISSION_CODES = {"42501", "PGRST301", "PGRST302"}
# invalid_text_representation: an id that is not a uuid
_INVALID_ID_CODE = "22P02"


@dataclass
class _Feed:
    subscription: Subscription
    last_ids: tuple[str, ...]
    task: asyncio.Task | None = None


@dataclass
class SupabasePhotoStore(PhotoStore):
    """Document-style store: one row per photo, partitioned by app and user.

    ``created_at`` and ``id`` come from column defaults so the database clock
    orders records. The ``seq`` identity column breaks timestamp ties.
    """

    supports_subscribe: ClassVar[bool] = True

    client: Client
    app_id: str = "default-app-id"
    table_name: str = "camera_images"
    poll_interval_seconds: float = 5.0
    _feeds: dict[Subscription, _Feed] = field(default_factory=dict)

    async def create_photo(self, user_id: str, image_data: str) -> PhotoRecord:
        """Insert a row and return it as stored."""
        validate_new_photo(user_id, image_data)
        query = (
            self.client.table(self.table_name)
            .insert(
                {
                    "app_id": self.app_id,
                    "user_id": user_id,
                    "image_b64": image_data,
                }
            )
        )
        rows = await self._execute("insert", query)
        if not rows:
            raise StorageUnavailable("Supabase did not return the created photo")
        record = _to_records(rows)[0]
        await self._publish(user_id)
        return record

    async def list_photos(self, user_id: str) -> list[PhotoRecord]:
        """Return the partition ordered by created_at then seq, newest first."""
        validate_user_id(user_id)
        query = (
            self.client.table(self.table_name)
            .select(_COLUMNS)
            .eq("app_id", self.app_id)
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .order("seq", desc=True)
        )
        rows = await self._execute("select", query)
        return _to_records(rows)

    async def get_photo(self, user_id: str, photo_id: str) -> PhotoRecord:
        """Return one row of the partition."""
        validate_user_id(user_id)
        validate_photo_id(photo_id)
        query = (
            self.client.table(self.table_name)
            .select(_COLUMNS)
            .eq("app_id", self.app_id)
            .eq("user_id", user_id)
            .eq("id", photo_id)
            .limit(1)
        )
        rows = await self._execute("select", query, photo_id=photo_id)
        if not rows:
            raise NotFound(f"Photo {photo_id} not found")
        return _to_records(rows)[0]

    async def delete_photo(self, user_id: str, photo_id: str) -> None:
        """Delete one row of the partition."""
        validate_user_id(user_id)
        validate_photo_id(photo_id)
        query = (
            self.client.table(self.table_name)
            .delete()
            .eq("app_id", self.app_id)
            .eq("user_id", user_id)
            .eq("id", photo_id)
        )
        rows = await self._execute("delete", query, photo_id=photo_id)
        if not rows:
            raise NotFound(f"Photo {photo_id} not found")
        await self._publish(user_id)

    async def subscribe(
        self, user_id: str, on_change: OnChange, on_error: OnError | None = None
    ) -> Subscription:
        """Emit the current snapshot and keep polling for membership changes.

        Writes made through this store are pushed immediately; writes made
        elsewhere show up on the next poll.
        """
        records = await self.list_photos(user_id)
        subscription = Subscription(
            user_id=user_id,
            on_change=on_change,
            on_error=on_error,
            on_cancel=self._stop_feed,
        )
        feed = _Feed(subscription=subscription, last_ids=_ids(records))
        self._feeds[subscription] = feed
        subscription.emit(records)
        if self.poll_interval_seconds > 0:
            feed.task = asyncio.create_task(self._poll(feed))
            feed.task.add_done_callback(_log_poll_result)
        return subscription

    async def close(self) -> None:
        """Cancel every live feed."""
        for subscription in list(self._feeds):
            subscription.cancel()

    async def _execute(
        self, action: str, query: Any, photo_id: str | None = None
    ) -> list[dict[str, Any]]:
        try:
            response = await asyncio.to_thread(query.execute)
        except APIError as exc:
            if photo_id is not None and exc.code == _INVALID_ID_CODE:
                raise NotFound(f"Photo {photo_id} not found") from exc
            if exc.code in _PERMISSION_CODES:
                raise PermissionDenied(
                    f"Supabase {action} on {self.table_name} denied: {exc.message}"
                ) from exc
            raise StorageUnavailable(
                f"Supabase {action} on {self.table_name} failed: {exc.message}"
            ) from exc
        except httpx.HTTPError as exc:
            raise StorageUnavailable(f"Supabase is unreachable: {exc}") from exc
        return response.data or []

    async def _poll(self, feed: _Feed) -> None:
        while feed.subscription.active:
            await asyncio.sleep(self.poll_interval_seconds)
            try:
                await self._refresh(feed)
            except Exception as exc:  # noqa: BLE001
                feed.subscription.fail(exc)

    async def _refresh(self, feed: _Feed) -> None:
        subscription = feed.subscription
        try:
            records = await self.list_photos(subscription.user_id)
        except PhotoStoreError as exc:
            subscription.fail(exc)
            return
        ids = _ids(records)
        if ids == feed.last_ids:
            return
        feed.last_ids = ids
        subscription.emit(records)

    async def _publish(self, user_id: str) -> None:
        for feed in list(self._feeds.values()):
            if feed.subscription.user_id == user_id:
                await self._refresh(feed)

    def _stop_feed(self, subscription: Subscription) -> None:
        feed = self._feeds.pop(subscription, None)
        if feed is not None and feed.task is not None:
            feed.task.cancel()
            logger.debug("Stopped photo feed for user %s", subscription.user_id)


def _ids(records: list[PhotoRecord]) -> tuple[str, ...]:
    return tuple(record.id for record in records)


def _to_records(rows: list[dict[str, Any]]) -> list[PhotoRecord]:
    try:
        return [
            PhotoRecord(
                id=str(row["id"]),
                user_id=str(row["user_id"]),
                image_data=row["image_b64"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]
    except (KeyError, TypeError, ValueError) as exc:
        raise StorageUnavailable(f"Malformed photo row: {exc}") from exc


def _log_poll_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Photo feed poller stopped", exc_info=exc)
