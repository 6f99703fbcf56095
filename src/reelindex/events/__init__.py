"""Change events for the content catalog.

Every committed mutation produces a change event on the bus. The change
listener consumes them to schedule index jobs and invalidate the cache.
"""

from reelindex.events.bus import EventBus, EventHandler, InMemoryEventBus
from reelindex.events.publisher import ChangePublisher, event_payload
from reelindex.events.redis_bus import RedisStreamEventBus
from reelindex.events.runtime import create_event_bus, get_event_bus, start_event_bus, stop_event_bus
from reelindex.events.schemas import ChangeEvent, ChangeKind

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "EventBus",
    "EventHandler",
    "InMemoryEventBus",
    "RedisStreamEventBus",
    "ChangePublisher",
    "event_payload",
    "create_event_bus",
    "get_event_bus",
    "start_event_bus",
    "stop_event_bus",
]
