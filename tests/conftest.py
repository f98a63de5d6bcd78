from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio

from pyblerelay.config import RelayConfig
from pyblerelay.exceptions import RelayTransportError
from pyblerelay.models.event import Event
from pyblerelay.storage import Storage

BASE_URL = "http://relay.test"


def make_event(device_id: str = "web-a", *, minute: int = 0, lat: float | None = 52.37, **kwargs: Any) -> Event:
    return Event(
        device_id=device_id,
        timestamp=datetime(2026, 1, 1, 12, minute, tzinfo=UTC),
        latitude=lat,
        longitude=4.90,
        **kwargs,
    )


@dataclass
class FakeIngestionServer:
    """In-process stand-in for the ingestion endpoints."""

    fail_single: bool = False
    fail_batch: bool = False
    # Persist the batch, then report failure (ambiguous timeout).
    persist_then_fail_batch: bool = False
    batch_gate: asyncio.Event | None = None
    batch_entered: asyncio.Event = field(default_factory=asyncio.Event)
    singles: list[dict[str, Any]] = field(default_factory=list)
    batches: list[list[dict[str, Any]]] = field(default_factory=list)
    persisted: list[dict[str, Any]] = field(default_factory=list)
    calls: dict[str, int] = field(default_factory=dict)

    def _record_call(self, endpoint: str) -> None:
        self.calls[endpoint] = self.calls.get(endpoint, 0) + 1

    async def post_json(self, url: str, payload: Any) -> None:
        if url.endswith("/api/events/batch"):
            self._record_call("batch")
            self.batch_entered.set()
            if self.batch_gate is not None:
                await self.batch_gate.wait()
            if self.fail_batch:
                raise RelayTransportError("HTTP 503", status_code=503, endpoint=url)
            self.batches.append(list(payload))
            self.persisted.extend(payload)
            if self.persist_then_fail_batch:
                raise RelayTransportError(f"Request to {url} timed out", endpoint=url)
            return

        if url.endswith("/api/events"):
            self._record_call("single")
            if self.fail_single:
                raise RelayTransportError(f"Request to {url} failed: offline", endpoint=url)
            self.singles.append(dict(payload))
            self.persisted.append(dict(payload))
            return

        raise AssertionError(f"Unexpected url in fake server: {url}")


@pytest.fixture
def config() -> RelayConfig:
    return RelayConfig(
        base_url=BASE_URL,
        storage_path=":memory:",
        realtime_enabled=False,
        flush_interval=0.05,
    )


@pytest.fixture
def server() -> FakeIngestionServer:
    return FakeIngestionServer()


@pytest_asyncio.fixture
async def storage() -> AsyncIterator[Storage]:
    store = Storage(":memory:")
    await store.open()
    yield store
    await store.close()


class FakeSocketClient:
    """Stand-in for ``socketio.AsyncClient`` that records handlers and calls."""

    def __init__(self, connect_error: Exception | None = None, **options: Any) -> None:
        self.options = options
        self.handlers: dict[str, Callable[..., Any]] = {}
        self.connect_calls: list[tuple[str, dict[str, Any]]] = []
        self.connect_error = connect_error
        self.disconnected = False

    def on(self, event: str, handler: Callable[..., Any] | None = None, namespace: str | None = None) -> None:
        assert handler is not None
        self.handlers[event] = handler

    async def connect(self, url: str, **kwargs: Any) -> None:
        self.connect_calls.append((url, kwargs))
        if self.connect_error is not None:
            raise self.connect_error
        self.handlers["connect"]()

    async def disconnect(self) -> None:
        self.disconnected = True
        self.handlers["disconnect"]("client disconnect")

    def server_emit(self, label: str, *args: Any) -> None:
        self.handlers["*"](label, *args)

    def drop_connection(self) -> None:
        self.handlers["disconnect"]("transport close")


@dataclass
class FakeSocketServer:
    """Factory installed in place of ``socketio.AsyncClient``."""

    connect_error: Exception | None = None
    clients: list[FakeSocketClient] = field(default_factory=list)

    def __call__(self, **options: Any) -> FakeSocketClient:
        client = FakeSocketClient(self.connect_error, **options)
        self.clients.append(client)
        return client

    @property
    def client(self) -> FakeSocketClient:
        return self.clients[-1]


@pytest.fixture
def socket_server(monkeypatch: pytest.MonkeyPatch) -> FakeSocketServer:
    fake = FakeSocketServer()
    monkeypatch.setattr("socketio.AsyncClient", fake)
    return fake
