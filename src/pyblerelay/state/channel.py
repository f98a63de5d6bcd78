"""Single-writer update loop for the device state store.

Self-reports, relays and push-channel deliveries all publish here; one
asyncio task drains the queue and is the only caller of
:meth:`DeviceStateStore.update`.
"""

from __future__ import annotations

import asyncio
import contextlib

from pyblerelay.models.event import Event
from pyblerelay.state.events import EventSource
from pyblerelay.state.store import DeviceStateStore


class StateUpdateChannel:
    def __init__(self, store: DeviceStateStore) -> None:
        self._store = store
        self._queue: asyncio.Queue[tuple[Event, EventSource]] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    @property
    def store(self) -> DeviceStateStore:
        return self._store

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def publish(self, event: Event, source: EventSource) -> None:
        """Queue *event* for the writer; must be called on the event loop."""
        self._queue.put_nowait((event, source))

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="pyblerelay-state-writer")

    async def stop(self) -> None:
        """Stop the writer after applying everything already published."""
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._apply_pending()

    async def join(self) -> None:
        """Wait until every published event has been applied."""
        if not self.is_running:
            self._apply_pending()
            return
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            event, source = await self._queue.get()
            try:
                self._store.update(event, source)
            finally:
                self._queue.task_done()

    def _apply_pending(self) -> None:
        while True:
            try:
                event, source = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._store.update(event, source)
            self._queue.task_done()
