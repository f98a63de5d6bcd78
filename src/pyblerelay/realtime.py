"""Real-time channel adapter.

Owns the push-channel connection lifecycle and feeds every pushed
``event:new`` message into the state update channel. It is independent of
the delivery path: a lost or failed channel never blocks submission or
queueing, and connectivity problems are only visible through
:attr:`RealtimeChannel.state`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import ValidationError

from pyblerelay._constants import NEW_EVENT_LABEL
from pyblerelay._realtime import ChannelSettings, ChannelState, PushMessage, PushRuntime
from pyblerelay.config import RelayConfig
from pyblerelay.models.event import Event
from pyblerelay.state.channel import StateUpdateChannel
from pyblerelay.state.events import EventSource

_logger = logging.getLogger(__name__)


class RealtimeChannel:
    def __init__(
        self,
        config: RelayConfig,
        updates: StateUpdateChannel,
        *,
        on_state_change: Callable[[ChannelState], None] | None = None,
    ) -> None:
        self._config = config
        self._updates = updates
        self._on_state_change = on_state_change
        self._runtime: PushRuntime | None = None
        self._state = ChannelState.DISCONNECTED
        self.received = 0

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ChannelState.CONNECTED

    @property
    def runtime(self) -> PushRuntime | None:
        return self._runtime

    async def start(self, device_id: str) -> None:
        """Best-effort connect (failures must not break the delivery path)."""
        if self._runtime is not None and self._runtime.is_running:
            return
        settings = ChannelSettings.from_config(self._config, device_id)
        runtime = PushRuntime(
            on_message=self._on_message,
            on_state=self._on_state,
            logger=_logger,
        )
        try:
            await runtime.start(settings)
        except Exception:
            _logger.warning("Push channel start failed", exc_info=True)
            self._on_state(ChannelState.DISCONNECTED)
            return
        self._runtime = runtime

    async def stop(self) -> None:
        """Tear the connection down."""
        runtime = self._runtime
        self._runtime = None
        if runtime is None:
            return
        try:
            await runtime.stop()
        except Exception:
            _logger.debug("Push channel stop failed", exc_info=True)
        self._on_state(ChannelState.DISCONNECTED)

    def _on_state(self, state: ChannelState) -> None:
        if state == self._state:
            return
        self._state = state
        _logger.info("Push channel state: %s", state)
        if self._on_state_change is not None:
            try:
                self._on_state_change(state)
            except Exception:
                _logger.debug("on_state_change callback failed", exc_info=True)

    def _on_message(self, message: PushMessage) -> None:
        """Forward a pushed event to the state writer."""
        if message.label != NEW_EVENT_LABEL:
            _logger.debug("Ignoring push message label=%s", message.label)
            return

        try:
            event = Event.from_wire(message.payload)
        except ValidationError:
            _logger.debug("Ignoring malformed pushed event", exc_info=True)
            return

        if not event.has_coordinates:
            _logger.debug("Ignoring pushed event without coordinates device=%s", event.device_id)
            return

        self.received += 1
        self._updates.publish(event, EventSource.PUSH)
