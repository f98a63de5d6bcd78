"""Durable local queue of undelivered events.

At-least-once buffer: no dedup happens here. The same logical reading may
be queued twice; the last-write-wins state merge absorbs duplicates.
Rows that no longer decode into an :class:`Event` are moved to the
storage dead-letter table the first time they are read.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from pyblerelay.models.event import Event
from pyblerelay.storage import Storage

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedEvent:
    """An event plus its position in the queue."""

    seq: int
    event: Event


class EventQueue:
    """FIFO of pending events persisted in :class:`~pyblerelay.storage.Storage`."""

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    async def enqueue(self, event: Event) -> int:
        seq = await self._storage.append_pending(event.to_wire())
        _logger.debug("Queued event seq=%s device=%s", seq, event.device_id)
        return seq

    async def peek_all(self) -> list[QueuedEvent]:
        """Current contents in enqueue order; readable events stay queued."""
        return await self._decode(await self._storage.list_pending())

    async def drain_all(self) -> list[QueuedEvent]:
        """Return the current contents and clear the queue atomically."""
        return await self._decode(await self._storage.pop_all_pending())

    async def remove(self, seqs: Iterable[int]) -> int:
        """Remove exactly the given records, leaving later arrivals in place."""
        return await self._storage.delete_pending(list(seqs))

    async def size(self) -> int:
        return await self._storage.count_pending()

    async def dead_letter_size(self) -> int:
        """Number of rows set aside because they could not be decoded."""
        return await self._storage.count_dead()

    async def _decode(self, rows: list[tuple[int, dict[str, Any]]]) -> list[QueuedEvent]:
        queued: list[QueuedEvent] = []
        unreadable: list[tuple[int, dict[str, Any]]] = []
        for seq, payload in rows:
            try:
                queued.append(QueuedEvent(seq=seq, event=Event.from_wire(payload)))
            except ValidationError:
                unreadable.append((seq, payload))

        if unreadable:
            await self._storage.dead_letter(unreadable)
            _logger.warning(
                "Moved %d unreadable queued events to dead letter seqs=%s",
                len(unreadable),
                [seq for seq, _payload in unreadable],
            )
        return queued
