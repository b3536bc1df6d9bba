"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from camera_vault.adapters.supabase_blob_store import SupabaseBlobPhotoStore
from camera_vault.adapters.supabase_photo_store import SupabasePhotoStore
from camera_vault.config import Settings, parse_allowed_user_ids, resolve_backend
from camera_vault.services.memory_store import InMemoryPhotoStore
from camera_vault.services.photos import PhotoService, PhotoStore

logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    backend: str
    photo_service: PhotoService
    close_resources: Callable[[], Awaitable[None]]


def build_store(settings: Settings, backend: str) -> PhotoStore:
    """Create the photo store for a resolved backend name."""
    if backend == "memory":
        return InMemoryPhotoStore()
    supabase_client = create_client(
        settings.supabase_url, settings.supabase_service_key
    )
    if backend == "blob":
        return SupabaseBlobPhotoStore(
            client=supabase_client,
            bucket=settings.storage_bucket,
            app_id=settings.app_id,
        )
    return SupabasePhotoStore(
        client=supabase_client,
        app_id=settings.app_id,
        table_name=settings.photos_table,
        poll_interval_seconds=settings.poll_interval_seconds,
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    backend = resolve_backend(resolved_settings)
    logger.info("Using %s photo storage backend", backend)
    photo_service = PhotoService(
        store=build_store(resolved_settings, backend),
        allowed_user_ids=parse_allowed_user_ids(resolved_settings.allowed_user_ids),
    )

    async def close_resources() -> None:
        await photo_service.close()

    return AppContainer(
        settings=resolved_settings,
        backend=backend,
        photo_service=photo_service,
        close_resources=close_resources,
    )
