"""Explicitly injected owner of the sync engine's shared resources."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from pyblerelay._transport import HttpTransport, Transport
from pyblerelay.config import RelayConfig
from pyblerelay.delivery import DeliveryClient
from pyblerelay.event_queue import EventQueue
from pyblerelay.identity import IdentityProvider
from pyblerelay.state.channel import StateUpdateChannel
from pyblerelay.state.store import DeviceStateStore
from pyblerelay.storage import Storage

_logger = logging.getLogger(__name__)


class SyncContext:
    """Holds storage, network client and state store for one device process.

    Components receive this object (or the parts of it they need) instead
    of reaching for module-level state.

    Usage::

        async with SyncContext(config) as ctx:
            device_id = await ctx.identity.get_device_id()
            await ctx.delivery.submit_event(event)
    """

    def __init__(
        self,
        config: RelayConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        storage: Storage | None = None,
    ) -> None:
        self.config = config
        self._external_session = session is not None
        self._http_session = session
        self._injected_transport = transport
        self._transport: Transport | None = None
        self.storage = storage if storage is not None else Storage(config.storage_path)
        self.queue = EventQueue(self.storage)
        self.identity = IdentityProvider(self.storage, prefix=config.device_id_prefix)
        self.store = DeviceStateStore()
        self.updates = StateUpdateChannel(self.store)
        self._delivery: DeliveryClient | None = None

    @property
    def delivery(self) -> DeliveryClient:
        if self._delivery is None:
            raise RuntimeError("SyncContext not entered. Use 'async with SyncContext(...) as ctx:'")
        return self._delivery

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SyncContext:
        await self.storage.open()
        if self._injected_transport is not None:
            self._transport = self._injected_transport
        else:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self.config, self._http_session)
        self._delivery = DeliveryClient(self.config, self._transport, self.queue)
        self.updates.start()
        _logger.debug("Sync context opened storage=%s", self.config.storage_path)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._delivery is not None:
            await self._delivery.stop_periodic_flush()
        await self.updates.stop()
        await self.storage.close()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None
        self._delivery = None
        _logger.debug("Sync context closed")
