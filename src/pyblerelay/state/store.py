"""In-memory device state store.

This is the only component allowed to merge events into device state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from pyblerelay.models.event import Event
from pyblerelay.state.events import EventSource

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class DeviceEntry:
    """Latest event of one device plus how and when it arrived."""

    event: Event
    source: EventSource
    applied_at: datetime


class DeviceStateStore:
    """Latest known event per device, last write by arrival wins.

    Embedded event timestamps are not consulted: an older reading applied
    later still replaces a newer one. Duplicate deliveries re-apply the
    same data.

    No validation happens here; producers hand in well-formed events.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._devices: dict[str, DeviceEntry] = {}
        self._last_updated_at: datetime | None = None

    def update(self, event: Event, source: EventSource = EventSource.LOCAL) -> None:
        """Replace the entry for ``event.device_id`` unconditionally."""
        now = self._clock()
        self._devices[event.device_id] = DeviceEntry(event=event, source=source, applied_at=now)
        self._last_updated_at = now
        _logger.debug("State updated device=%s source=%s", event.device_id, source)

    def snapshot(self) -> dict[str, Event]:
        """Current state keyed by device id.

        The dict is a fresh copy and events are immutable, so callers may
        hold on to it freely.
        """
        return {device_id: entry.event for device_id, entry in self._devices.items()}

    def get(self, device_id: str) -> Event | None:
        entry = self._devices.get(device_id)
        return None if entry is None else entry.event

    def entries(self) -> dict[str, DeviceEntry]:
        return dict(self._devices)

    def located_count(self) -> int:
        """Number of devices whose latest event carries coordinates."""
        return sum(1 for entry in self._devices.values() if entry.event.has_coordinates)

    @property
    def last_updated_at(self) -> datetime | None:
        return self._last_updated_at

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices
