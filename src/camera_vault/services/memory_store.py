"""Session-scoped photo store kept in process memory."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar
from uuid import uuid4

from camera_vault.domain.errors import NotFound
from camera_vault.domain.photos import PhotoRecord, sort_newest_first, utc_now
from camera_vault.services.photos import (
    OnChange,
    OnError,
    PhotoStore,
    Subscription,
    validate_new_photo,
    validate_user_id,
)


@dataclass
class InMemoryPhotoStore(PhotoStore):
    """In-memory store used when no durable backend is configured.

    Records are lost when the process exits.
    """

    supports_subscribe: ClassVar[bool] = True

    clock: Callable[[], datetime] = utc_now
    _partitions: dict[str, list[PhotoRecord]] = field(default_factory=dict)
    _subscriptions: list[Subscription] = field(default_factory=list)

    async def create_photo(self, user_id: str, image_data: str) -> PhotoRecord:
        """Append a record stamped with the store clock."""
        validate_new_photo(user_id, image_data)
        record = PhotoRecord(
            id=str(uuid4()),
            user_id=user_id,
            image_data=image_data,
            created_at=self.clock(),
        )
        self._partitions.setdefault(user_id, []).append(record)
        self._publish(user_id)
        return record

    async def list_photos(self, user_id: str) -> list[PhotoRecord]:
        """Return the partition newest first."""
        validate_user_id(user_id)
        return self._snapshot(user_id)

    async def get_photo(self, user_id: str, photo_id: str) -> PhotoRecord:
        """Return a record by id."""
        for record in self._partitions.get(user_id, []):
            if record.id == photo_id:
                return record
        raise NotFound(f"Photo {photo_id} not found")

    async def delete_photo(self, user_id: str, photo_id: str) -> None:
        """Remove a record by id."""
        records = self._partitions.get(user_id, [])
        remaining = [record for record in records if record.id != photo_id]
        if len(remaining) == len(records):
            raise NotFound(f"Photo {photo_id} not found")
        self._partitions[user_id] = remaining
        self._publish(user_id)

    async def subscribe(
        self, user_id: str, on_change: OnChange, on_error: OnError | None = None
    ) -> Subscription:
        """Emit the current snapshot now and after every mutation."""
        validate_user_id(user_id)
        subscription = Subscription(
            user_id=user_id,
            on_change=on_change,
            on_error=on_error,
            on_cancel=self._subscriptions.remove,
        )
        self._subscriptions.append(subscription)
        subscription.emit(self._snapshot(user_id))
        return subscription

    async def close(self) -> None:
        """Cancel all live feeds."""
        for subscription in list(self._subscriptions):
            subscription.cancel()

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def _snapshot(self, user_id: str) -> list[PhotoRecord]:
        return sort_newest_first(self._partitions.get(user_id, []))

    def _publish(self, user_id: str) -> None:
        snapshot = self._snapshot(user_id)
        for subscription in list(self._subscriptions):
            if subscription.user_id == user_id:
                subscription.emit(snapshot)
