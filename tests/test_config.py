"""Tests for settings helpers."""

import pytest

from camera_vault.config import Settings, parse_allowed_user_ids, resolve_backend
from camera_vault.domain.errors import StorageUnavailable

_CREDENTIALS = {
    "supabase_url": "https://example.supabase.co",
    "supabase_service_key": "header.payload.signature",
}


@pytest.mark.parametrize(
    ("backend", "credentials", "expected"),
    [
        ("auto", {}, "memory"),
        ("auto", _CREDENTIALS, "supabase"),
        ("memory", _CREDENTIALS, "memory"),
        ("Blob", _CREDENTIALS, "blob"),
        ("supabase", _CREDENTIALS, "supabase"),
    ],
)
def test_resolve_backend(backend: str, credentials: dict, expected: str) -> None:
    settings = Settings(storage_backend=backend, **credentials)

    assert resolve_backend(settings) == expected


def test_durable_backend_needs_credentials() -> None:
    settings = Settings(
        storage_backend="supabase", supabase_url=None, supabase_service_key=None
    )

    with pytest.raises(StorageUnavailable):
        resolve_backend(settings)


def test_unknown_backend_is_rejected() -> None:
    with pytest.raises(StorageUnavailable):
        resolve_backend(Settings(storage_backend="firestore"))


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, None),
        ("", None),
        ("*", None),
        ("alice, bob,,", {"alice", "bob"}),
        (" , ", None),
    ],
)
def test_parse_allowed_user_ids(raw: str | None, expected: set[str] | None) -> None:
    assert parse_allowed_user_ids(raw) == expected
