"""Photo store contract and the application service built on it."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from camera_vault.domain.errors import (
    InvalidInput,
    NotFound,
    PermissionDenied,
    PhotoStoreError,
)
from camera_vault.domain.photos import DEFAULT_MIME_TYPE, PhotoRecord, encode_image

logger = logging.getLogger(__name__)

OnChange = Callable[[list[PhotoRecord]], None]
OnError = Callable[[Exception], None]


@dataclass(eq=False)
class Subscription:
    """Handle for a live feed of ordered snapshots for one partition."""

    user_id: str
    on_change: OnChange
    on_error: OnError | None = None
    on_cancel: Callable[["Subscription"], None] | None = None
    active: bool = True

    def emit(self, records: list[PhotoRecord]) -> None:
        """Deliver a replacement snapshot if the feed is still live.

        A raising callback is reported through ``fail``; it never reaches the
        code that triggered the snapshot.
        """
        if not self.active:
            return
        try:
            self.on_change(list(records))
        except Exception as exc:  # noqa: BLE001
            self.fail(exc)

    def fail(self, exc: Exception) -> None:
        """Report a backend or callback failure to the subscriber."""
        if not self.active:
            return
        if self.on_error is not None:
            try:
                self.on_error(exc)
            except Exception:
                logger.exception("Error handler for user %s failed", self.user_id)
            return
        logger.error("Photo feed for user %s failed", self.user_id, exc_info=exc)

    def cancel(self) -> None:
        """Tear the feed down; further calls are no-ops."""
        if not self.active:
            return
        self.active = False
        if self.on_cancel is not None:
            self.on_cancel(self)


class PhotoStore(Protocol):
    """Persistence interface for a user's photos."""

    supports_subscribe: bool

    async def create_photo(self, user_id: str, image_data: str) -> PhotoRecord:
        """Persist a new photo and return the stored record."""

    async def list_photos(self, user_id: str) -> list[PhotoRecord]:
        """Return the partition's photos, newest first."""

    async def get_photo(self, user_id: str, photo_id: str) -> PhotoRecord:
        """Return a single photo or raise NotFound."""

    async def delete_photo(self, user_id: str, photo_id: str) -> None:
        """Remove a photo or raise NotFound."""

    async def subscribe(
        self, user_id: str, on_change: OnChange, on_error: OnError | None = None
    ) -> Subscription:
        """Start a live feed of snapshots for the partition."""

    async def close(self) -> None:
        """Release backend resources and cancel live feeds."""


def validate_new_photo(user_id: str, image_data: str) -> None:
    """Check the preconditions shared by every backend's create."""
    validate_user_id(user_id)
    if not isinstance(image_data, str) or not image_data.strip():
        raise InvalidInput("image_data must be a non-empty string")


def validate_user_id(user_id: str) -> None:
    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidInput("user_id must be a non-empty string")


def validate_photo_id(photo_id: str) -> None:
    if not isinstance(photo_id, str) or not photo_id.strip():
        raise InvalidInput("photo_id must be a non-empty string")


@dataclass
class PhotoService:
    """Application service for listing, saving and deleting photos."""

    store: PhotoStore
    allowed_user_ids: set[str] | None = None
    _subscriptions: list[Subscription] = field(default_factory=list, init=False)
    _manual_feeds: list[Subscription] = field(default_factory=list, init=False)

    async def create_photo(self, user_id: str, image_data: str) -> PhotoRecord:
        """Store an already encoded photo for the user."""
        self._authorize(user_id)
        validate_new_photo(user_id, image_data)
        record = await self.store.create_photo(user_id, image_data)
        logger.info("Saved photo %s for user %s", record.id, user_id)
        await self._refresh_manual_feeds(user_id)
        return record

    async def save_capture(
        self, user_id: str, image_bytes: bytes, mime_type: str = DEFAULT_MIME_TYPE
    ) -> PhotoRecord:
        """Encode captured image bytes and store them."""
        if not image_bytes:
            raise InvalidInput("Captured image is empty")
        return await self.create_photo(user_id, encode_image(image_bytes, mime_type))

    async def list_photos(self, user_id: str) -> list[PhotoRecord]:
        """Return the user's photos, newest first."""
        self._authorize(user_id)
        return await self.store.list_photos(user_id)

    async def get_photo(self, user_id: str, photo_id: str) -> PhotoRecord:
        """Return one of the user's photos."""
        self._authorize(user_id)
        validate_photo_id(photo_id)
        return await self.store.get_photo(user_id, photo_id)

    async def delete_photo(self, user_id: str, photo_id: str) -> bool:
        """Delete a photo; return False if it was already gone."""
        self._authorize(user_id)
        validate_photo_id(photo_id)
        try:
            await self.store.delete_photo(user_id, photo_id)
        except NotFound:
            logger.info("Photo %s for user %s already deleted", photo_id, user_id)
            return False
        logger.info("Deleted photo %s for user %s", photo_id, user_id)
        await self._refresh_manual_feeds(user_id)
        return True

    async def watch(
        self, user_id: str, on_change: OnChange, on_error: OnError | None = None
    ) -> Subscription:
        """Subscribe to snapshots, falling back to refresh-after-write feeds."""
        self._authorize(user_id)
        if self.store.supports_subscribe:
            subscription = await self.store.subscribe(user_id, on_change, on_error)
        else:
            subscription = Subscription(
                user_id=user_id,
                on_change=on_change,
                on_error=on_error,
                on_cancel=self._forget_manual_feed,
            )
            self._manual_feeds.append(subscription)
            await self.refresh(subscription)
        self._subscriptions = [sub for sub in self._subscriptions if sub.active]
        self._subscriptions.append(subscription)
        return subscription

    async def refresh(self, subscription: Subscription) -> None:
        """Re-fetch the partition and push it to the subscription."""
        if not subscription.active:
            return
        try:
            records = await self.store.list_photos(subscription.user_id)
        except PhotoStoreError as exc:
            subscription.fail(exc)
            return
        subscription.emit(records)

    async def close(self) -> None:
        """Cancel every feed handed out and close the store."""
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.cancel()
        await self.store.close()

    def _authorize(self, user_id: str) -> None:
        validate_user_id(user_id)
        if self.allowed_user_ids is not None and user_id not in self.allowed_user_ids:
            raise PermissionDenied(f"User {user_id} may not access this store")

    def _forget_manual_feed(self, subscription: Subscription) -> None:
        if subscription in self._manual_feeds:
            self._manual_feeds.remove(subscription)

    async def _refresh_manual_feeds(self, user_id: str) -> None:
        for subscription in list(self._manual_feeds):
            if subscription.user_id == user_id:
                await self.refresh(subscription)
