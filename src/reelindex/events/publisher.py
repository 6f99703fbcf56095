"""Change event publishing for content mutations.

Publishing happens after the store mutation committed. A failed publish is
logged and counted but never raised: the write already succeeded and the
reconciliation and reindex paths repair any index drift it leaves behind.

Example:
    publisher = ChangePublisher(get_event_bus())

    item = await repo.create(draft)
    await session.commit()
    await publisher.publish_created(item)
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from reelindex.content.model import ContentItem
from reelindex.events.bus import EventBus
from reelindex.events.schemas import ChangeEvent, ChangeKind
from reelindex.observability.metrics import record_event_published

logger = logging.getLogger(__name__)


def event_payload(item: ContentItem) -> dict[str, Any]:
    """Snapshot of an item for the event payload.

    Dates are ISO-8601 strings; tags default to an empty list and the
    popularity score to zero.
    """
    payload = item.model_dump(mode="json", by_alias=True)
    payload["tags"] = payload.get("tags") or []
    payload["popularityScore"] = payload.get("popularityScore") or 0
    return payload


class ChangePublisher:
    """Publishes content change events to the event bus."""

    def __init__(self, bus: EventBus):
        self.bus = bus

    async def publish_created(self, item: ContentItem) -> ChangeEvent | None:
        return await self._publish(
            ChangeEvent(ChangeKind.CREATED, entity_id=str(item.id), payload=event_payload(item))
        )

    async def publish_updated(self, item: ContentItem) -> ChangeEvent | None:
        return await self._publish(
            ChangeEvent(ChangeKind.UPDATED, entity_id=str(item.id), payload=event_payload(item))
        )

    async def publish_deleted(self, item_id: UUID | str) -> ChangeEvent | None:
        """Delete events carry only the id."""
        return await self._publish(
            ChangeEvent(ChangeKind.DELETED, entity_id=str(item_id), payload={"id": str(item_id)})
        )

    async def request_reindex(self) -> ChangeEvent | None:
        """Publish the administrative signal that rebuilds the whole index."""
        return await self._publish(ChangeEvent(ChangeKind.REINDEX_REQUESTED))

    async def _publish(self, event: ChangeEvent) -> ChangeEvent | None:
        """Hand the event to the bus; returns None if that failed."""
        try:
            await self.bus.publish(event)
        except Exception as e:
            logger.error(f"Failed to publish {event.topic} for {event.entity_id}: {e}")
            record_event_published(event.change_kind.value, outcome="failed")
            return None

        record_event_published(event.change_kind.value)
        logger.debug(f"Published {event.topic} for {event.entity_id}")
        return event
