"""Domain models for stored camera photos."""

import base64
import binascii
from dataclasses import dataclass
from datetime import UTC, datetime

from camera_vault.domain.errors import DecodeError

DEFAULT_MIME_TYPE = "image/jpeg"
PLACEHOLDER_IMAGE_URL = "https://placehold.co/400x300/CCCCCC/000000?text=Image+Error"


@dataclass(frozen=True)
class PhotoRecord:
    """Represents a persisted photo in a user's partition."""

    id: str
    user_id: str
    image_data: str
    created_at: datetime


@dataclass(frozen=True)
class PhotoView:
    """A photo prepared for rendering."""

    record: PhotoRecord
    src: str
    renderable: bool
    error: str | None = None


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def sort_newest_first(records: list[PhotoRecord]) -> list[PhotoRecord]:
    """Order records by created_at descending.

    ``records`` must be in insertion order; equal timestamps keep the later
    insertion first.
    """
    return sorted(reversed(records), key=lambda record: record.created_at, reverse=True)


def encode_image(image_bytes: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    """Encode raw image bytes as a base64 data URI."""
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def decode_image(image_data: str) -> bytes:
    """Decode a data URI or bare base64 string back to bytes."""
    payload = image_data.strip()
    if payload.startswith("data:"):
        header, sep, payload = payload.partition(",")
        if not sep or not header.endswith(";base64"):
            raise DecodeError("Image payload is not a base64 data URI")
    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Image payload is not valid base64: {exc}") from exc
    if not decoded:
        raise DecodeError("Image payload is empty")
    return decoded


def to_view(record: PhotoRecord) -> PhotoView:
    """Prepare a record for rendering, flagging payloads that fail to decode."""
    try:
        decode_image(record.image_data)
    except DecodeError as exc:
        return PhotoView(
            record=record,
            src=PLACEHOLDER_IMAGE_URL,
            renderable=False,
            error=str(exc),
        )
    src = record.image_data
    if not src.startswith("data:"):
        src = f"data:{DEFAULT_MIME_TYPE};base64,{src}"
    return PhotoView(record=record, src=src, renderable=True)
