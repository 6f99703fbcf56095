"""Event bus abstraction for change events.

Provides pub/sub with manual acknowledgment semantics:
- InMemoryEventBus: for single-process deployments and tests
- RedisStreamEventBus: consumer groups on Redis Streams

An event counts as handled only once every subscribed handler returned
without raising. A raising handler leaves the event unacknowledged and it
is delivered again, up to the configured delivery limit.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from reelindex.events.schemas import ChangeEvent

logger = logging.getLogger(__name__)


EventHandler = Callable[[ChangeEvent], Awaitable[None]]

DEFAULT_MAX_DELIVERIES = 5


class EventBus(ABC):
    """Abstract event bus interface."""

    @abstractmethod
    async def publish(self, event: ChangeEvent) -> None:
        """Publish an event to the bus."""
        pass

    @abstractmethod
    async def subscribe(self, handler: EventHandler) -> None:
        """Subscribe a handler to receive events."""
        pass

    @abstractmethod
    async def start(self) -> None:
        """Start consuming events."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop consuming events."""
        pass


async def dispatch(handlers: list[EventHandler], event: ChangeEvent) -> None:
    """Run every handler for ``event``; the first failure propagates."""
    for handler in handlers:
        try:
            await handler(event)
        except Exception as e:
            handler_name = getattr(handler, "__name__", handler.__class__.__name__)
            logger.error(f"Handler {handler_name} failed for event {event.event_id}: {e}")
            raise


class InMemoryEventBus(EventBus):
    """In-memory event bus using asyncio.Queue.

    Failed events are put back on the queue until ``max_deliveries`` is
    reached, then kept in ``dead_letters`` for inspection.
    """

    def __init__(self, max_size: int = 10000, max_deliveries: int = DEFAULT_MAX_DELIVERIES):
        self._queue: asyncio.Queue[tuple[ChangeEvent, int]] = asyncio.Queue(maxsize=max_size)
        self._handlers: list[EventHandler] = []
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self.max_deliveries = max_deliveries
        self.dead_letters: list[ChangeEvent] = []

    async def publish(self, event: ChangeEvent) -> None:
        """Publish an event to the queue.

        Non-blocking if queue has space, blocks if queue is full.
        """
        await self._queue.put((event, 0))

    async def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    async def start(self) -> None:
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._process_loop())

    async def stop(self) -> None:
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _process_loop(self) -> None:
        while self._running:
            try:
                event, deliveries = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except TimeoutError:
                continue
            except asyncio.CancelledError:
                break

            try:
                await self._deliver(event, deliveries)
            finally:
                self._queue.task_done()

    async def _deliver(self, event: ChangeEvent, deliveries: int) -> None:
        deliveries += 1
        try:
            await dispatch(self._handlers, event)
        except Exception:
            if deliveries >= self.max_deliveries:
                logger.warning(
                    f"Event {event.event_id} dead-lettered after {deliveries} deliveries"
                )
                self.dead_letters.append(event)
            else:
                self._requeue(event, deliveries)

    def _requeue(self, event: ChangeEvent, deliveries: int) -> None:
        # Only the consumer drains the queue, so it must never wait on a full one
        try:
            self._queue.put_nowait((event, deliveries))
        except asyncio.QueueFull:
            logger.warning(
                f"Event {event.event_id} dead-lettered: queue full on redelivery {deliveries}"
            )
            self.dead_letters.append(event)

    async def process_pending(self) -> int:
        """Deliver every queued event inline, including redeliveries.

        Used by tests and one-shot commands that run without ``start()``.

        Returns:
            Number of deliveries attempted
        """
        delivered = 0
        while not self._queue.empty():
            event, deliveries = self._queue.get_nowait()
            try:
                await self._deliver(event, deliveries)
            finally:
                self._queue.task_done()
            delivered += 1
        return delivered

    @property
    def pending_count(self) -> int:
        """Number of events waiting to be processed."""
        return self._queue.qsize()

    async def drain(self) -> None:
        """Wait for all pending events to be processed."""
        await self._queue.join()
