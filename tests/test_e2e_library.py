from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path

import pytest
from conftest import FakeIngestionServer, FakeSocketServer
from socketio import exceptions as socketio_exceptions

from pyblerelay._realtime import ChannelState
from pyblerelay.client import RelayClient
from pyblerelay.config import RelayConfig
from pyblerelay.exceptions import RelayError
from pyblerelay.models import BeaconRecord, LocationSample
from pyblerelay.state.events import EventSource


def _sample(minute: int = 0) -> LocationSample:
    return LocationSample(latitude=52.37, longitude=4.90, timestamp=datetime(2026, 1, 1, 12, minute, tzinfo=UTC))


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_offline_event_is_flushed_and_merged(config: RelayConfig, server: FakeIngestionServer) -> None:
    server.fail_single = True
    server.fail_batch = True

    async with RelayClient(config, transport=server) as client:
        assert await client.report_location(_sample()) is False

        pending = await client.delivery.queue.peek_all()
        assert len(pending) == 1
        queued_event = pending[0].event
        assert queued_event.device_id == client.device_id
        assert queued_event.relayed is False

        server.fail_batch = False
        assert await client.flush() is True
        await client.context.updates.join()

        assert await client.delivery.queue.size() == 0
        assert client.devices == {client.device_id: queued_event}
        assert server.batches == [[queued_event.to_wire()]]


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_relay_without_latitude_never_reaches_state(
    config: RelayConfig,
    server: FakeIngestionServer,
) -> None:
    async with RelayClient(config, transport=server) as client:
        malformed = BeaconRecord.model_validate({"id": "peer-1", "lon": 4.9, "rssi": -70})
        valid = BeaconRecord.model_validate({"id": "peer-2", "lat": 52.0, "lon": 4.9, "rssi": -65})

        assert await client.relay_beacon(malformed) is None
        assert await client.relay_beacons([malformed, valid]) == 1
        await client.context.updates.join()

        assert "peer-1" not in client.devices
        relayed = client.devices["peer-2"]
        assert relayed.relayed is True
        assert relayed.uploader_device_id == client.device_id
        assert relayed.signal_strength == -65
        assert client.store.entries()["peer-2"].source == EventSource.RELAY
        assert [payload["deviceId"] for payload in server.singles] == ["peer-2"]
        assert await client.delivery.queue.size() == 0


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_push_channel_feeds_state(
    server: FakeIngestionServer,
    socket_server: FakeSocketServer,
) -> None:
    config = RelayConfig(base_url="http://relay.test", storage_path=":memory:", realtime_enabled=True)
    states: list[ChannelState] = []

    async with RelayClient(config, transport=server, on_channel_state=states.append) as client:
        await client.enable_sync()
        assert client.sync_enabled
        assert client.channel.is_connected
        assert client.delivery.periodic_flush_running

        await client.report_location(_sample(minute=10))
        pushed = {
            "deviceId": client.device_id,
            "ts": "2026-01-01T11:00:00Z",
            "lat": 1.0,
            "lon": 2.0,
            "relayed": False,
        }
        socket_server.client.server_emit("event:new", pushed)
        await client.context.updates.join()

        # The push arrived last, so it wins even though its reading is older.
        own = client.devices[client.device_id]
        assert own.latitude == 1.0
        assert client.store.entries()[client.device_id].source == EventSource.PUSH

        await client.disable_sync()
        assert not client.sync_enabled
        assert client.channel.runtime is None
        assert not client.delivery.periodic_flush_running

    assert states == [ChannelState.CONNECTING, ChannelState.CONNECTED, ChannelState.DISCONNECTED]


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_channel_failure_does_not_block_delivery(
    server: FakeIngestionServer,
    socket_server: FakeSocketServer,
) -> None:
    socket_server.connect_error = socketio_exceptions.ConnectionError("server unreachable")
    config = RelayConfig(base_url="http://relay.test", storage_path=":memory:", realtime_enabled=True)

    async with RelayClient(config, transport=server) as client:
        await client.enable_sync()
        assert not client.channel.is_connected
        assert await client.report_location(_sample()) is True


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_restart_keeps_identity_and_pending_queue(tmp_path: Path, server: FakeIngestionServer) -> None:
    config = RelayConfig(
        base_url="http://relay.test",
        storage_path=str(tmp_path / "relay.sqlite3"),
        realtime_enabled=False,
    )
    server.fail_single = True
    server.fail_batch = True

    async with RelayClient(config, transport=server) as client:
        first_id = client.device_id
        await client.report_location(_sample())

    server.fail_single = False
    server.fail_batch = False
    async with RelayClient(config, transport=server) as client:
        assert client.device_id == first_id
        assert await client.delivery.queue.size() == 1
        assert await client.report_location(_sample(minute=1)) is True
        assert await client.delivery.queue.size() == 0

    assert server.batches[0][0]["deviceId"] == first_id


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_e2e_async_sources_are_consumed(config: RelayConfig, server: FakeIngestionServer) -> None:
    async def locations() -> AsyncIterator[LocationSample]:
        for minute in range(3):
            yield _sample(minute)

    async def adverts() -> AsyncIterator[BeaconRecord]:
        yield BeaconRecord(origin_id="peer", latitude=1.0, longitude=2.0)
        yield BeaconRecord(origin_id="ghost", latitude=None, longitude=None)

    async with RelayClient(config, transport=server) as client:
        await asyncio.gather(client.run_location_source(locations()), client.run_beacon_source(adverts()))
        await client.context.updates.join()

        assert set(client.devices) == {client.device_id, "peer"}
        assert client.devices[client.device_id].timestamp.minute == 2
        assert len(server.singles) == 4


def test_device_id_requires_entered_client(config: RelayConfig) -> None:
    client = RelayClient(config)
    with pytest.raises(RelayError):
        _ = client.device_id
