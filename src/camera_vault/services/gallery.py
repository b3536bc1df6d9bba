"""Presentation session for the capture-and-gallery workflow."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Protocol

from camera_vault.domain.errors import OperationInProgress, PhotoStoreError
from camera_vault.domain.photos import (
    DEFAULT_MIME_TYPE,
    PhotoRecord,
    PhotoView,
    encode_image,
    to_view,
)
from camera_vault.services.photos import PhotoService, Subscription

logger = logging.getLogger(__name__)


class CaptureError(Exception):
    """Raised by capture sources when the camera cannot be used."""


class CaptureSource(Protocol):
    """Interface for a device camera or equivalent frame source."""

    async def start(self) -> None:
        """Acquire the camera stream."""

    async def capture(self) -> bytes:
        """Return one JPEG-encoded frame."""

    async def stop(self) -> None:
        """Release the camera stream."""


@dataclass
class GallerySession:
    """UI state for one user: camera, pending capture, busy flag and gallery.

    Only one mutating operation may run at a time; a second one raises
    OperationInProgress while ``busy`` is set.
    """

    service: PhotoService
    camera: CaptureSource
    user_id: str
    mime_type: str = DEFAULT_MIME_TYPE
    camera_active: bool = False
    captured: bytes | None = None
    preview_url: str | None = None
    busy: bool = False
    message: str = ""
    photos: list[PhotoView] = field(default_factory=list)
    subscription: Subscription | None = None

    async def open(self) -> None:
        """Start following the user's gallery."""
        if self.subscription is not None:
            self.subscription.cancel()
        self.subscription = await self.service.watch(
            self.user_id, self._apply_snapshot, self._on_feed_error
        )

    async def switch_user(self, user_id: str) -> None:
        """Move the session to another partition, dropping the old feed."""
        if self.subscription is not None:
            self.subscription.cancel()
            self.subscription = None
        self.user_id = user_id
        self.photos = []
        await self.open()

    async def close(self) -> None:
        """Cancel the gallery feed and release the camera."""
        if self.subscription is not None:
            self.subscription.cancel()
            self.subscription = None
        await self.stop_camera()

    async def start_camera(self) -> bool:
        """Turn the camera on; return whether it is active."""
        async with self._operation("Starting camera..."):
            try:
                await self.camera.start()
            except CaptureError as exc:
                logger.warning("Camera unavailable: %s", exc)
                self.camera_active = False
                self.message = (
                    f"Error accessing camera: {exc}. Please allow camera access."
                )
                return False
            self.camera_active = True
            self.message = "Camera active."
            return True

    async def stop_camera(self) -> None:
        """Turn the camera off and discard any pending capture."""
        if self.camera_active:
            await self.camera.stop()
        self.camera_active = False
        self.captured = None
        self.preview_url = None
        self.message = ""

    async def capture(self) -> bool:
        """Grab a frame from the active camera for preview."""
        if not self.camera_active:
            self.message = "Start the camera first."
            return False
        try:
            frame = await self.camera.capture()
        except CaptureError as exc:
            logger.warning("Capture failed: %s", exc)
            frame = b""
        if not frame:
            self.message = "Failed to capture photo."
            return False
        self.captured = frame
        self.preview_url = encode_image(frame, self.mime_type)
        self.message = "Photo captured!"
        return True

    async def save(self) -> PhotoRecord | None:
        """Persist the pending capture."""
        if self.captured is None:
            self.message = "Please capture a photo first."
            return None
        async with self._operation("Saving image..."):
            try:
                record = await self.service.save_capture(
                    self.user_id, self.captured, self.mime_type
                )
            except PhotoStoreError as exc:
                logger.warning("Saving photo for %s failed: %s", self.user_id, exc)
                self.message = f"Error saving image: {exc}"
                return None
        await self.stop_camera()
        self.message = "Image saved successfully!"
        return record

    async def delete(self, photo_id: str) -> bool:
        """Delete a photo shown in the gallery."""
        async with self._operation("Deleting image..."):
            try:
                deleted = await self.service.delete_photo(self.user_id, photo_id)
            except PhotoStoreError as exc:
                logger.warning("Deleting photo %s failed: %s", photo_id, exc)
                self.message = f"Error deleting image: {exc}"
                return False
        self.message = (
            "Image deleted successfully!" if deleted else "Image was already deleted."
        )
        return deleted

    async def refresh(self) -> None:
        """Re-fetch the gallery on demand."""
        if self.subscription is not None and self.subscription.active:
            await self.service.refresh(self.subscription)
            return
        try:
            records = await self.service.list_photos(self.user_id)
        except PhotoStoreError as exc:
            self._on_feed_error(exc)
            return
        self._apply_snapshot(records)

    @asynccontextmanager
    async def _operation(self, progress_message: str) -> AsyncIterator[None]:
        if self.busy:
            raise OperationInProgress("Another operation is still running")
        self.busy = True
        self.message = progress_message
        try:
            yield
        finally:
            self.busy = False

    def _apply_snapshot(self, records: list[PhotoRecord]) -> None:
        self.photos = [to_view(record) for record in records]
        for view in self.photos:
            if not view.renderable:
                logger.warning(
                    "Photo %s cannot be rendered: %s", view.record.id, view.error
                )

    def _on_feed_error(self, exc: Exception) -> None:
        logger.error("Error fetching images for %s: %s", self.user_id, exc)
        self.message = f"Error fetching images: {exc}"
