"""Store-and-forward delivery of events to the ingestion server.

Every submission is attempted once immediately. Whatever fails lands in
the durable queue, and the queue is flushed as one batch after every
submission attempt (plus, optionally, on a timer).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from pyblerelay._transport import Transport
from pyblerelay.config import RelayConfig
from pyblerelay.event_queue import EventQueue
from pyblerelay.exceptions import RelayTransportError
from pyblerelay.models.event import Event

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class DeliveryStats:
    """Running delivery counters for observability."""

    delivered: int = 0
    queued: int = 0
    batches_flushed: int = 0
    events_flushed: int = 0
    flush_failures: int = 0
    last_success_at: datetime | None = None


class DeliveryClient:
    """Delivers events with at-least-once semantics.

    Transport failures never surface to callers: :meth:`submit_event` and
    :meth:`flush_queue_if_any` report the outcome as a boolean. Storage
    failures (:class:`~pyblerelay.exceptions.RelayStorageError`) do
    propagate, since an event that cannot be queued would otherwise be
    lost silently.
    """

    def __init__(
        self,
        config: RelayConfig,
        transport: Transport,
        queue: EventQueue,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._transport = transport
        self._queue = queue
        self._clock = clock
        self._flush_lock = asyncio.Lock()
        self._flush_task: asyncio.Task[None] | None = None
        self.stats = DeliveryStats()

    @property
    def queue(self) -> EventQueue:
        return self._queue

    async def submit_event(self, event: Event) -> bool:
        """Send one event; queue it on failure.

        Returns ``True`` when the server accepted the event. Either way the
        pending queue gets a flush attempt afterwards.
        """
        delivered = await self._send_single(event)
        if not delivered:
            await self._queue.enqueue(event)
            self.stats.queued += 1
            _logger.info("Upload failed, stored event locally device=%s", event.device_id)
        await self.flush_queue_if_any()
        return delivered

    async def _send_single(self, event: Event) -> bool:
        try:
            await self._transport.post_json(self._config.events_url, event.to_wire())
        except RelayTransportError as exc:
            _logger.debug("Event upload failed device=%s: %s", event.device_id, exc)
            return False
        self.stats.delivered += 1
        self.stats.last_success_at = self._clock()
        return True

    async def flush_queue_if_any(self) -> bool:
        """Send the whole pending queue as one batch.

        The queue is read, not drained. Only the records that were part of
        the sent snapshot are removed, and only after the server confirmed
        the batch, so events queued while the request is in flight stay
        for the next flush. Returns ``True`` when a batch was accepted.
        """
        async with self._flush_lock:
            snapshot = await self._queue.peek_all()
            if not snapshot:
                return False

            _logger.debug("Attempting batch upload of %d events", len(snapshot))
            payload = [queued.event.to_wire() for queued in snapshot]
            try:
                await self._transport.post_json(self._config.batch_url, payload)
            except RelayTransportError as exc:
                self.stats.flush_failures += 1
                _logger.debug("Batch upload of %d events failed: %s", len(snapshot), exc)
                return False

            await self._queue.remove(queued.seq for queued in snapshot)
            self.stats.batches_flushed += 1
            self.stats.events_flushed += len(snapshot)
            self.stats.last_success_at = self._clock()
            _logger.info("Batch upload successful, cleared %d queued events", len(snapshot))
            return True

    # ------------------------------------------------------------------
    # Periodic flush
    # ------------------------------------------------------------------

    @property
    def periodic_flush_running(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    def start_periodic_flush(self, interval: float | None = None) -> None:
        """Flush the queue every *interval* seconds until stopped."""
        if self.periodic_flush_running:
            return
        period = self._config.flush_interval if interval is None else interval
        self._flush_task = asyncio.get_running_loop().create_task(
            self._periodic_flush(period),
            name="pyblerelay-periodic-flush",
        )

    async def stop_periodic_flush(self) -> None:
        task = self._flush_task
        self._flush_task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _periodic_flush(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.flush_queue_if_any()
            except Exception:
                _logger.warning("Periodic flush failed", exc_info=True)
