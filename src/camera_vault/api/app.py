"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse

from camera_vault.api.models import (
    PhotoCreateRequest,
    PhotoListResponse,
    PhotoResponse,
)
from camera_vault.api.ui import router as ui_router
from camera_vault.app_logging import configure_logging
from camera_vault.containers import AppContainer
from camera_vault.domain.errors import (
    InvalidInput,
    NotFound,
    OperationInProgress,
    PermissionDenied,
    PhotoStoreError,
    StorageUnavailable,
    SubscriptionUnsupported,
)
from camera_vault.domain.photos import PhotoRecord

_ERROR_STATUS: dict[type[PhotoStoreError], int] = {
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    OperationInProgress: status.HTTP_409_CONFLICT,
    SubscriptionUnsupported: status.HTTP_501_NOT_IMPLEMENTED,
    StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Serving photos from the %s backend", container.backend)
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(ui_router)

    @app.exception_handler(PhotoStoreError)
    async def photo_store_error(
        _request: Request, exc: PhotoStoreError
    ) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("Photo storage failure: %s", exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok", "backend": container.backend}

    @app.get("/users/{user_id}/photos")
    async def list_photos(user_id: str, request: Request) -> PhotoListResponse:
        """Return the user's photos, newest first."""
        state_container: AppContainer = request.app.state.container
        records = await state_container.photo_service.list_photos(user_id)
        return PhotoListResponse.from_records(records)

    @app.get("/users/{user_id}/photos/{photo_id}")
    async def get_photo(user_id: str, photo_id: str, request: Request) -> PhotoResponse:
        """Return a single photo."""
        state_container: AppContainer = request.app.state.container
        record = await state_container.photo_service.get_photo(user_id, photo_id)
        return PhotoResponse.from_record(record)

    @app.post("/users/{user_id}/photos", status_code=status.HTTP_201_CREATED)
    async def create_photo(
        user_id: str, body: PhotoCreateRequest, request: Request
    ) -> PhotoResponse:
        """Save an encoded photo for the user."""
        state_container: AppContainer = request.app.state.container
        record = await state_container.photo_service.create_photo(
            user_id, body.image_data
        )
        return PhotoResponse.from_record(record)

    @app.delete(
        "/users/{user_id}/photos/{photo_id}",
        status_code=status.HTTP_204_NO_CONTENT,
    )
    async def delete_photo(user_id: str, photo_id: str, request: Request) -> Response:
        """Delete a photo; 404 when it is already gone."""
        state_container: AppContainer = request.app.state.container
        deleted = await state_container.photo_service.delete_photo(user_id, photo_id)
        if not deleted:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"detail": f"Photo {photo_id} not found"},
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.websocket("/users/{user_id}/photos/feed")
    async def photo_feed(websocket: WebSocket, user_id: str) -> None:
        """Push a fresh list every time the user's photos change.

        Sending ``refresh`` forces a re-fetch, which is how clients of
        backends without a live feed pick up changes made elsewhere.
        """
        state_container: AppContainer = websocket.app.state.container
        service = state_container.photo_service
        await websocket.accept()
        loop = asyncio.get_running_loop()
        outbox: asyncio.Queue[dict[str, object]] = asyncio.Queue()

        def on_change(records: list[PhotoRecord]) -> None:
            payload = PhotoListResponse.from_records(records).model_dump(mode="json")
            loop.call_soon_threadsafe(outbox.put_nowait, payload)

        def on_error(exc: Exception) -> None:
            loop.call_soon_threadsafe(outbox.put_nowait, {"error": str(exc)})

        try:
            subscription = await service.watch(user_id, on_change, on_error)
        except PhotoStoreError as exc:
            await websocket.send_json({"error": str(exc)})
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        async def forward() -> None:
            while True:
                await websocket.send_json(await outbox.get())

        sender = asyncio.create_task(forward())
        try:
            while True:
                text = await websocket.receive_text()
                if text.strip() == "refresh":
                    await service.refresh(subscription)
        except WebSocketDisconnect:
            logger.debug("Photo feed for %s disconnected", user_id)
        finally:
            sender.cancel()
            subscription.cancel()

    return app


def _status_for(exc: PhotoStoreError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in _ERROR_STATUS:
            return _ERROR_STATUS[error_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR
