"""Build events from sensor readings.

Producers own validation: anything returned from here is safe to submit
and to merge into device state.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from pyblerelay._constants import ADVERT_ID_PREFIX
from pyblerelay.models.event import Event
from pyblerelay.models.readings import BeaconRecord, LocationSample

_logger = logging.getLogger(__name__)


def build_self_event(sample: LocationSample, device_id: str) -> Event:
    """Package a local position fix as a self-reported event."""
    return Event(
        device_id=device_id,
        timestamp=sample.timestamp,
        latitude=sample.latitude,
        longitude=sample.longitude,
        relayed=False,
    )


def build_relay_event(record: BeaconRecord, uploader_id: str) -> Event | None:
    """Package an overheard advert as a relayed event.

    Returns ``None`` for adverts without usable coordinates or without any
    identity to key them by; such records are never enqueued or merged.
    """
    if not record.has_coordinates:
        _logger.debug("Dropping advert without coordinates origin=%s", record.origin_id)
        return None
    if record.origin_id is None:
        _logger.debug("Dropping advert without origin id")
        return None

    return Event(
        device_id=record.origin_id,
        timestamp=record.timestamp or datetime.now(UTC),
        latitude=record.latitude,
        longitude=record.longitude,
        signal_strength=record.signal_strength,
        source_device_id=record.origin_id,
        uploader_device_id=uploader_id,
        relayed=True,
    )


def fallback_advert_id(source_id: str) -> str:
    """Identity used for adverts that carry no id of their own."""
    return f"{ADVERT_ID_PREFIX}{source_id}"
