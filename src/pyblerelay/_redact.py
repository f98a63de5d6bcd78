"""Mask location fixes in event payloads before DEBUG logging."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_COORDINATE_KEYS: frozenset[str] = frozenset({"lat", "lon", "lng", "latitude", "longitude"})


def _redact_event(event: Mapping[str, Any]) -> dict[str, Any]:
    # None coordinates are left as-is.
    return {
        key: "<redacted>" if key in _COORDINATE_KEYS and value is not None else value
        for key, value in event.items()
    }


def redact_for_log(payload: Any, *, max_events: int = 20) -> Any:
    """Return a copy of a single-event or batch payload with coordinates masked.

    Batches longer than *max_events* are cut short with a marker giving
    the number of omitted events.
    """
    if isinstance(payload, Mapping):
        return _redact_event(payload)
    if isinstance(payload, list):
        shown: list[Any] = [redact_for_log(item) for item in payload[:max_events]]
        if len(payload) > max_events:
            shown.append(f"…<{len(payload) - max_events} more events>")
        return shown
    return payload
