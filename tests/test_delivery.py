from __future__ import annotations

import asyncio

import pytest
from conftest import FakeIngestionServer, make_event

from pyblerelay.config import RelayConfig
from pyblerelay.delivery import DeliveryClient
from pyblerelay.event_queue import EventQueue
from pyblerelay.models.event import Event
from pyblerelay.state.events import EventSource
from pyblerelay.state.store import DeviceStateStore
from pyblerelay.storage import Storage


@pytest.fixture
def queue(storage: Storage) -> EventQueue:
    return EventQueue(storage)


@pytest.fixture
def delivery(config: RelayConfig, server: FakeIngestionServer, queue: EventQueue) -> DeliveryClient:
    return DeliveryClient(config, server, queue)


@pytest.mark.asyncio
async def test_submit_success_does_not_queue(delivery: DeliveryClient, server: FakeIngestionServer) -> None:
    event = make_event("A")

    assert await delivery.submit_event(event) is True

    assert server.singles == [event.to_wire()]
    assert await delivery.queue.size() == 0
    # Empty queue: the opportunistic flush makes no network call.
    assert server.calls.get("batch", 0) == 0
    assert delivery.stats.delivered == 1


@pytest.mark.asyncio
async def test_offline_submissions_are_queued_not_dropped(
    delivery: DeliveryClient,
    server: FakeIngestionServer,
) -> None:
    server.fail_single = True
    server.fail_batch = True
    events = [make_event("A", minute=1), make_event("B", minute=2), make_event("A", minute=3)]

    for event in events:
        assert await delivery.submit_event(event) is False

    assert [q.event for q in await delivery.queue.peek_all()] == events
    # Each failed submission still triggered a flush attempt.
    assert server.calls["batch"] == 3
    assert delivery.stats.queued == 3
    assert delivery.stats.flush_failures == 3

    server.fail_batch = False
    assert await delivery.flush_queue_if_any() is True

    assert server.batches[-1] == [event.to_wire() for event in events]
    assert await delivery.queue.size() == 0


@pytest.mark.asyncio
async def test_next_submission_flushes_earlier_failures(
    delivery: DeliveryClient,
    server: FakeIngestionServer,
) -> None:
    server.fail_single = True
    server.fail_batch = True
    first = make_event("A", minute=1)
    await delivery.submit_event(first)

    server.fail_single = False
    server.fail_batch = False
    second = make_event("B", minute=2)
    assert await delivery.submit_event(second) is True

    assert server.batches == [[first.to_wire()]]
    assert await delivery.queue.size() == 0


@pytest.mark.asyncio
async def test_flush_on_empty_queue_is_noop(delivery: DeliveryClient, server: FakeIngestionServer) -> None:
    assert await delivery.flush_queue_if_any() is False
    assert server.calls == {}


@pytest.mark.asyncio
async def test_failed_flush_leaves_queue_intact(delivery: DeliveryClient, server: FakeIngestionServer) -> None:
    server.fail_batch = True
    await delivery.queue.enqueue(make_event("A"))
    before = await delivery.queue.peek_all()

    assert await delivery.flush_queue_if_any() is False

    assert await delivery.queue.peek_all() == before


@pytest.mark.asyncio
async def test_events_enqueued_during_flush_survive(
    delivery: DeliveryClient,
    server: FakeIngestionServer,
) -> None:
    server.batch_gate = asyncio.Event()
    in_flight = make_event("A", minute=1)
    await delivery.queue.enqueue(in_flight)

    flush = asyncio.create_task(delivery.flush_queue_if_any())
    await server.batch_entered.wait()
    late = make_event("B", minute=2)
    await delivery.queue.enqueue(late)
    server.batch_gate.set()

    assert await flush is True
    assert server.batches == [[in_flight.to_wire()]]
    assert [q.event for q in await delivery.queue.peek_all()] == [late]


@pytest.mark.asyncio
async def test_concurrent_flushes_do_not_double_send(
    delivery: DeliveryClient,
    server: FakeIngestionServer,
) -> None:
    server.batch_gate = asyncio.Event()
    await delivery.queue.enqueue(make_event("A"))

    first = asyncio.create_task(delivery.flush_queue_if_any())
    second = asyncio.create_task(delivery.flush_queue_if_any())
    await server.batch_entered.wait()
    server.batch_gate.set()

    assert await first is True
    # The second flush waited for the first and found nothing left.
    assert await second is False
    assert server.calls["batch"] == 1


@pytest.mark.asyncio
async def test_ambiguous_flush_failure_is_retried_without_corrupting_state(
    delivery: DeliveryClient,
    server: FakeIngestionServer,
) -> None:
    event = make_event("A")
    await delivery.queue.enqueue(event)
    server.persist_then_fail_batch = True

    assert await delivery.flush_queue_if_any() is False
    assert await delivery.queue.size() == 1

    server.persist_then_fail_batch = False
    assert await delivery.flush_queue_if_any() is True

    # The server saw the event twice; merging both copies is harmless.
    assert server.persisted == [event.to_wire(), event.to_wire()]
    store = DeviceStateStore()
    for payload in server.persisted:
        store.update(Event.from_wire(payload), EventSource.PUSH)
    assert store.snapshot() == {"A": event}


@pytest.mark.asyncio
async def test_periodic_flush_drains_queue(delivery: DeliveryClient, server: FakeIngestionServer) -> None:
    await delivery.queue.enqueue(make_event("A"))

    delivery.start_periodic_flush(interval=0.01)
    assert delivery.periodic_flush_running
    try:
        for _ in range(100):
            if server.batches:
                break
            await asyncio.sleep(0.01)
    finally:
        await delivery.stop_periodic_flush()

    assert not delivery.periodic_flush_running
    assert len(server.batches) == 1
    assert await delivery.queue.size() == 0


@pytest.mark.asyncio
async def test_unreadable_queued_row_does_not_stay_in_queue(
    delivery: DeliveryClient,
    server: FakeIngestionServer,
    storage: Storage,
) -> None:
    await storage.append_pending({"deviceId": ""})
    readable = make_event("B")
    await delivery.queue.enqueue(readable)

    assert await delivery.flush_queue_if_any() is True
    assert server.batches == [[readable.to_wire()]]
    assert await delivery.queue.size() == 0
    assert await delivery.queue.dead_letter_size() == 1

    assert await delivery.flush_queue_if_any() is False
    assert server.calls["batch"] == 1
