"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from camera_vault.domain.errors import StorageUnavailable

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

BACKENDS = {"supabase", "blob", "memory"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    storage_backend: str = "auto"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    app_id: str = "default-app-id"
    photos_table: str = "camera_images"
    storage_bucket: str = "camera-images"
    poll_interval_seconds: float = 5.0
    allowed_user_ids: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def resolve_backend(settings: Settings) -> str:
    """Pick the storage backend, falling back to memory without credentials."""
    requested = settings.storage_backend.strip().lower()
    has_credentials = bool(settings.supabase_url and settings.supabase_service_key)
    if requested in {"", "auto"}:
        return "supabase" if has_credentials else "memory"
    if requested not in BACKENDS:
        raise StorageUnavailable(f"Unknown storage backend: {requested}")
    if requested != "memory" and not has_credentials:
        raise StorageUnavailable(
            f"Storage backend {requested} needs SUPABASE_URL and SUPABASE_SERVICE_KEY"
        )
    return requested


def parse_allowed_user_ids(raw: str | None) -> set[str] | None:
    """Parse the partition allow-list from env."""
    if raw is None:
        return None
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return None
    ids: set[str] = set()
    for chunk in cleaned.split(","):
        value = chunk.strip()
        if value:
            ids.add(value)
    return ids or None
