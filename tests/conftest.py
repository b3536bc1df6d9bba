"""Shared test fixtures."""

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import pytest
from storage3.utils import StorageException

from camera_vault.config import Settings
from camera_vault.containers import AppContainer
from camera_vault.services.gallery import CaptureError, CaptureSource
from camera_vault.services.memory_store import InMemoryPhotoStore
from camera_vault.services.photos import PhotoService

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-frame\xff\xd9"


@dataclass
class SteppingClock:
    """Clock that advances a fixed step on every call."""

    start: datetime = field(
        default_factory=lambda: datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    )
    step: timedelta = timedelta(seconds=1)
    calls: int = 0

    def __call__(self) -> datetime:
        value = self.start + self.step * self.calls
        self.calls += 1
        return value


@dataclass
class FakeCamera(CaptureSource):
    """Fake capture source returning queued frames."""

    frames: list[bytes] = field(default_factory=lambda: [JPEG_BYTES])
    fail_start: bool = False
    started: int = 0
    stopped: int = 0

    async def start(self) -> None:
        if self.fail_start:
            raise CaptureError("Permission denied")
        self.started += 1

    async def capture(self) -> bytes:
        return self.frames.pop(0) if self.frames else b""

    async def stop(self) -> None:
        self.stopped += 1


@dataclass
class FakeResponse:
    data: list[dict[str, Any]] | None


@dataclass
class FakeTable:
    """Rows of one table plus the server-side column defaults."""

    clock: SteppingClock = field(default_factory=SteppingClock)
    rows: list[dict[str, Any]] = field(default_factory=list)
    next_seq: int = 1
    error: Exception | None = None
    executed: int = 0


class FakeQuery:
    """Chainable PostgREST-style query over a FakeTable."""

    def __init__(self, table: FakeTable) -> None:
        self.table = table
        self.action = "select"
        self.payload: dict[str, Any] | None = None
        self.filters: list[tuple[str, Any]] = []
        self.orders: list[tuple[str, bool]] = []
        self.limit_count: int | None = None

    def select(self, *_columns: str) -> "FakeQuery":
        self.action = "select"
        return self

    def insert(self, payload: dict[str, Any]) -> "FakeQuery":
        self.action = "insert"
        self.payload = payload
        return self

    def delete(self) -> "FakeQuery":
        self.action = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.orders.append((column, desc))
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.limit_count = count
        return self

    def execute(self) -> FakeResponse:
        self.table.executed += 1
        if self.table.error is not None:
            raise self.table.error
        if self.action == "insert":
            row = dict(self.payload or {})
            row["id"] = str(uuid4())
            row["seq"] = self.table.next_seq
            row["created_at"] = self.table.clock().isoformat()
            self.table.next_seq += 1
            self.table.rows.append(row)
            return FakeResponse(data=[dict(row)])
        matched = [row for row in self.table.rows if self._matches(row)]
        if self.action == "delete":
            self.table.rows = [row for row in self.table.rows if row not in matched]
            return FakeResponse(data=matched)
        for column, desc in reversed(self.orders):
            matched.sort(key=lambda row, column=column: row[column], reverse=desc)
        if self.limit_count is not None:
            matched = matched[: self.limit_count]
        return FakeResponse(data=[dict(row) for row in matched])

    def _matches(self, row: dict[str, Any]) -> bool:
        return all(row.get(column) == value for column, value in self.filters)


@dataclass
class FakeBucket:
    """In-memory Supabase Storage bucket."""

    objects: dict[str, bytes] = field(default_factory=dict)
    download_error: Exception | None = None
    upload_error: Exception | None = None
    latency: float = 0.0
    uploads: list[tuple[str, dict[str, str]]] = field(default_factory=list)

    def download(self, path: str) -> bytes:
        time.sleep(self.latency)
        if self.download_error is not None:
            raise self.download_error
        if path not in self.objects:
            raise StorageException("Object not found")
        return self.objects[path]

    def upload(self, path: str, file: bytes, file_options: dict[str, str]) -> None:
        time.sleep(self.latency)
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append((path, file_options))
        self.objects[path] = file


@dataclass
class FakeStorage:
    buckets: dict[str, FakeBucket] = field(default_factory=dict)

    def from_(self, name: str) -> FakeBucket:
        return self.buckets.setdefault(name, FakeBucket())


@dataclass
class FakeSupabaseClient:
    """Fake Supabase client with table and storage access."""

    tables: dict[str, FakeTable] = field(default_factory=dict)
    storage: FakeStorage = field(default_factory=FakeStorage)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.tables.setdefault(name, FakeTable()))


@pytest.fixture
def settings() -> Settings:
    return Settings(storage_backend="memory", app_id="test-app")


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def memory_store(clock: SteppingClock) -> InMemoryPhotoStore:
    return InMemoryPhotoStore(clock=clock)


@pytest.fixture
def photo_service(memory_store: InMemoryPhotoStore) -> PhotoService:
    return PhotoService(store=memory_store)


@pytest.fixture
def camera() -> FakeCamera:
    return FakeCamera()


@pytest.fixture
def container(settings: Settings, photo_service: PhotoService) -> AppContainer:
    async def close_resources() -> None:
        await photo_service.close()

    return AppContainer(
        settings=settings,
        backend="memory",
        photo_service=photo_service,
        close_resources=close_resources,
    )
