"""Runtime wiring for the change event bus."""

from __future__ import annotations

import logging

from reelindex.config import settings
from reelindex.events.bus import EventBus, InMemoryEventBus
from reelindex.events.redis_bus import RedisStreamEventBus

logger = logging.getLogger(__name__)

_event_bus: EventBus | None = None


def create_event_bus() -> EventBus:
    """Create an event bus based on configuration."""
    backend = settings.event_bus_backend.lower()

    if backend in {"memory", "inmemory", "in_memory"}:
        return InMemoryEventBus(max_deliveries=settings.event_max_deliveries)

    if backend in {"redis", "redis_stream", "redis-stream", "streams"}:
        return RedisStreamEventBus(
            stream_name=settings.event_stream_name,
            consumer_group=settings.event_consumer_group,
            consumer_id=settings.event_consumer_id,
            prefetch=settings.event_prefetch,
            claim_idle_ms=settings.event_claim_idle_ms,
            max_deliveries=settings.event_max_deliveries,
        )

    raise ValueError("Unsupported event_bus_backend. Supported values: memory, redis.")


def get_event_bus() -> EventBus:
    """Get the singleton event bus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = create_event_bus()
    return _event_bus


async def start_event_bus() -> EventBus:
    """Start consuming on the configured event bus."""
    bus = get_event_bus()
    await bus.start()
    logger.info("Event bus started (%s)", type(bus).__name__)
    return bus


async def stop_event_bus() -> None:
    global _event_bus
    if _event_bus is None:
        return
    await _event_bus.stop()
    logger.info("Event bus stopped (%s)", type(_event_bus).__name__)
    _event_bus = None
