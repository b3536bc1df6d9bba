"""Tests for photo encoding and ordering helpers."""

from datetime import timedelta

import pytest

from camera_vault.domain.errors import DecodeError
from camera_vault.domain.photos import (
    PLACEHOLDER_IMAGE_URL,
    PhotoRecord,
    decode_image,
    encode_image,
    sort_newest_first,
    to_view,
)
from tests.conftest import JPEG_BYTES, SteppingClock


def _record(image_data: str, created_at=None, photo_id: str = "p1") -> PhotoRecord:
    return PhotoRecord(
        id=photo_id,
        user_id="alice",
        image_data=image_data,
        created_at=created_at or SteppingClock()(),
    )


def test_encode_image_builds_data_uri() -> None:
    encoded = encode_image(JPEG_BYTES, "image/png")

    assert encoded.startswith("data:image/png;base64,")
    assert decode_image(encoded) == JPEG_BYTES


def test_decode_accepts_bare_base64() -> None:
    bare = encode_image(JPEG_BYTES).partition(",")[2]

    assert decode_image(bare) == JPEG_BYTES


@pytest.mark.parametrize(
    "payload",
    ["data:image/jpeg,rawbytes", "data:image/jpeg;base64,@@@", "%%%", "data:;base64,"],
)
def test_decode_rejects_malformed_payloads(payload: str) -> None:
    with pytest.raises(DecodeError):
        decode_image(payload)


def test_to_view_prefixes_bare_base64() -> None:
    bare = encode_image(JPEG_BYTES).partition(",")[2]

    view = to_view(_record(bare))

    assert view.renderable
    assert view.src == f"data:image/jpeg;base64,{bare}"


def test_to_view_falls_back_to_placeholder() -> None:
    view = to_view(_record("not an image"))

    assert not view.renderable
    assert view.src == PLACEHOLDER_IMAGE_URL
    assert view.error


def test_sort_newest_first_prefers_later_insert_on_ties() -> None:
    clock = SteppingClock(step=timedelta(0))
    records = [_record("aaaa", clock(), f"p{i}") for i in range(3)]
    newer = _record("aaaa", clock() + timedelta(seconds=5), "p3")

    ordered = sort_newest_first([*records, newer])

    assert [record.id for record in ordered] == ["p3", "p2", "p1", "p0"]
