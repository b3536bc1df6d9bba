"""Pydantic models for the photo HTTP API."""

from datetime import datetime

from pydantic import BaseModel

from camera_vault.domain.photos import PhotoRecord, to_view


class PhotoCreateRequest(BaseModel):
    """Body for saving a captured photo."""

    image_data: str


class PhotoResponse(BaseModel):
    """A stored photo as returned to clients."""

    id: str
    user_id: str
    image_data: str
    created_at: datetime
    src: str
    renderable: bool
    error: str | None = None

    @classmethod
    def from_record(cls, record: PhotoRecord) -> "PhotoResponse":
        view = to_view(record)
        return cls(
            id=record.id,
            user_id=record.user_id,
            image_data=record.image_data,
            created_at=record.created_at,
            src=view.src,
            renderable=view.renderable,
            error=view.error,
        )


class PhotoListResponse(BaseModel):
    photos: list[PhotoResponse]

    @classmethod
    def from_records(cls, records: list[PhotoRecord]) -> "PhotoListResponse":
        return cls(photos=[PhotoResponse.from_record(record) for record in records])
