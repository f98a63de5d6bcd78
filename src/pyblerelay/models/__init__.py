"""Data models for pyblerelay."""

from pyblerelay.models.event import Event
from pyblerelay.models.readings import BeaconRecord, LocationSample

__all__ = [
    "BeaconRecord",
    "Event",
    "LocationSample",
]
