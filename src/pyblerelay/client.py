"""High-level async client wiring sensor producers to the sync engine."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Callable, Iterable
from typing import Any

import aiohttp

from pyblerelay._realtime import ChannelState
from pyblerelay._transport import Transport
from pyblerelay.config import RelayConfig
from pyblerelay.context import SyncContext
from pyblerelay.delivery import DeliveryClient
from pyblerelay.exceptions import RelayError
from pyblerelay.ingestion.events import build_relay_event, build_self_event
from pyblerelay.models.event import Event
from pyblerelay.models.readings import BeaconRecord, LocationSample
from pyblerelay.realtime import RealtimeChannel
from pyblerelay.state.events import EventSource
from pyblerelay.state.store import DeviceStateStore
from pyblerelay.storage import Storage

_logger = logging.getLogger(__name__)


class RelayClient:
    """Async client that reports our location and relays overheard beacons.

    Usage::

        async with RelayClient(config) as client:
            await client.enable_sync()
            await client.report_location(LocationSample(latitude=52.37, longitude=4.90))
            devices = client.devices
    """

    def __init__(
        self,
        config: RelayConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        storage: Storage | None = None,
        on_channel_state: Callable[[ChannelState], None] | None = None,
    ) -> None:
        self._config = config
        self._context = SyncContext(config, session=session, transport=transport, storage=storage)
        self._channel = RealtimeChannel(config, self._context.updates, on_state_change=on_channel_state)
        self._device_id: str | None = None
        self._sync_enabled = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RelayClient:
        await self._context.__aenter__()
        # Resolved once per session; a degraded (unpersisted) identity
        # therefore stays stable until the client is closed.
        self._device_id = await self._context.identity.get_device_id()
        _logger.debug("Relay client ready device=%s", self._device_id)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.disable_sync()
        await self._context.__aexit__(*exc)
        self._device_id = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def context(self) -> SyncContext:
        return self._context

    @property
    def delivery(self) -> DeliveryClient:
        return self._context.delivery

    @property
    def store(self) -> DeviceStateStore:
        return self._context.store

    @property
    def channel(self) -> RealtimeChannel:
        return self._channel

    @property
    def device_id(self) -> str:
        if self._device_id is None:
            raise RelayError("Client not initialized. Use 'async with RelayClient(...) as client:'")
        return self._device_id

    @property
    def devices(self) -> dict[str, Event]:
        """Merged device state, keyed by device id."""
        return self._context.store.snapshot()

    @property
    def sync_enabled(self) -> bool:
        return self._sync_enabled

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    async def report_location(self, sample: LocationSample) -> bool:
        """Merge and upload a position fix of this device.

        Returns ``True`` when it was delivered immediately, ``False`` when
        it was queued for a later batch.
        """
        event = build_self_event(sample, self.device_id)
        self._context.updates.publish(event, EventSource.LOCAL)
        return await self._context.delivery.submit_event(event)

    async def relay_beacon(self, record: BeaconRecord) -> bool | None:
        """Merge and upload an overheard advert on behalf of its originator.

        Returns ``None`` when the advert was rejected as malformed,
        otherwise the delivery result.
        """
        event = build_relay_event(record, self.device_id)
        if event is None:
            return None
        self._context.updates.publish(event, EventSource.RELAY)
        return await self._context.delivery.submit_event(event)

    async def relay_beacons(self, records: Iterable[BeaconRecord]) -> int:
        """Relay a burst of adverts; returns how many were accepted for relay."""
        relayed = 0
        for record in records:
            if await self.relay_beacon(record) is not None:
                relayed += 1
        return relayed

    async def run_location_source(self, source: AsyncIterable[LocationSample]) -> None:
        """Report every sample a location adapter yields until it is exhausted."""
        async for sample in source:
            await self.report_location(sample)

    async def run_beacon_source(self, source: AsyncIterable[BeaconRecord]) -> None:
        """Relay every advert a beacon adapter yields until it is exhausted."""
        async for record in source:
            await self.relay_beacon(record)

    async def flush(self) -> bool:
        return await self._context.delivery.flush_queue_if_any()

    # ------------------------------------------------------------------
    # Sync lifecycle
    # ------------------------------------------------------------------

    async def enable_sync(self) -> None:
        """Start the push channel and the periodic queue flush."""
        if self._sync_enabled:
            return
        self._sync_enabled = True
        self._context.delivery.start_periodic_flush()
        if self._config.realtime_enabled:
            await self._channel.start(self.device_id)

    async def disable_sync(self) -> None:
        """Stop the periodic flush and release the push-channel connection."""
        if not self._sync_enabled:
            return
        self._sync_enabled = False
        await self._channel.stop()
        await self._context.delivery.stop_periodic_flush()
