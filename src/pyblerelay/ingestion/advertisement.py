"""Decode location adverts carried in BLE service data.

Relaying peers advertise a small UTF-8 JSON object such as
``{"id": "web-1f2e", "lat": 52.37, "lng": 4.90, "ts": "2026-01-01T00:00:00Z"}``
in the service-data field of their advertisement.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from pyblerelay.ingestion.events import fallback_advert_id
from pyblerelay.models.readings import BeaconRecord

_logger = logging.getLogger(__name__)


def parse_advertisement(
    service_data: bytes,
    *,
    rssi: int | None = None,
    fallback_id: str | None = None,
) -> BeaconRecord | None:
    """Parse one service-data blob into a :class:`BeaconRecord`.

    *fallback_id* is the scanner-reported hardware id of the advertiser;
    it is namespaced and used only when the payload carries no ``id``.
    Returns ``None`` for payloads that are not a JSON object.
    """
    try:
        parsed: Any = json.loads(service_data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        _logger.debug("Ignoring non-JSON advert (%d bytes)", len(service_data))
        return None
    if not isinstance(parsed, dict):
        _logger.debug("Ignoring advert whose JSON is not an object")
        return None

    origin_id = parsed.get("id")
    if not origin_id and fallback_id:
        origin_id = fallback_advert_id(fallback_id)

    try:
        return BeaconRecord.model_validate(
            {
                "origin_id": origin_id,
                "lat": parsed.get("lat"),
                "lon": parsed.get("lng", parsed.get("lon")),
                "ts": parsed.get("ts"),
                "rssi": rssi,
                "raw": parsed,
            }
        )
    except ValidationError:
        _logger.debug("Ignoring advert with invalid fields", exc_info=True)
        return None
