"""pyblerelay - Async offline-first sync client for location reports and relayed BLE beacons."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyblerelay")
except PackageNotFoundError:
    __version__ = "0+local"
from pyblerelay._realtime import ChannelState
from pyblerelay.client import RelayClient
from pyblerelay.config import RelayConfig
from pyblerelay.context import SyncContext
from pyblerelay.delivery import DeliveryClient, DeliveryStats
from pyblerelay.event_queue import EventQueue, QueuedEvent
from pyblerelay.exceptions import (
    RelayChannelError,
    RelayConfigError,
    RelayError,
    RelayStorageError,
    RelayTransportError,
)
from pyblerelay.identity import IdentityProvider
from pyblerelay.ingestion.advertisement import parse_advertisement
from pyblerelay.models import BeaconRecord, Event, LocationSample
from pyblerelay.realtime import RealtimeChannel
from pyblerelay.state import DeviceEntry, DeviceStateStore, EventSource, StateUpdateChannel
from pyblerelay.storage import Storage

__all__ = [
    "__version__",
    "BeaconRecord",
    "ChannelState",
    "DeliveryClient",
    "DeliveryStats",
    "DeviceEntry",
    "DeviceStateStore",
    "Event",
    "EventQueue",
    "EventSource",
    "IdentityProvider",
    "LocationSample",
    "QueuedEvent",
    "RealtimeChannel",
    "RelayChannelError",
    "RelayClient",
    "RelayConfig",
    "RelayConfigError",
    "RelayError",
    "RelayStorageError",
    "RelayTransportError",
    "StateUpdateChannel",
    "Storage",
    "SyncContext",
    "parse_advertisement",
]
