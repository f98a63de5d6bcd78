"""State/store layer.

This package is the single source of truth for how locally reported,
relayed, and server-pushed events are merged into one per-device view.
"""

from pyblerelay.state.channel import StateUpdateChannel
from pyblerelay.state.events import EventSource
from pyblerelay.state.store import DeviceEntry, DeviceStateStore

__all__ = ["DeviceEntry", "DeviceStateStore", "EventSource", "StateUpdateChannel"]
