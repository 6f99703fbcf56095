"""Change listener: turns change events into index jobs and cache drops.

For every event the listener schedules the matching job, then drops the
entity's cached lookup and every cached search page. It returns normally
only when all of that succeeded; any failure propagates to the bus, which
withholds the acknowledgment so the event is delivered again.
"""

from __future__ import annotations

import logging

from reelindex.cache.keys import CacheKeys
from reelindex.cache.redis import RedisCache
from reelindex.events.schemas import ChangeEvent, ChangeKind
from reelindex.jobs.tasks import IndexJobs
from reelindex.observability.logging import LogContext
from reelindex.observability.metrics import record_event_consumed

logger = logging.getLogger(__name__)


class ChangeListener:
    """Subscribes to the event bus on behalf of the indexing pipeline."""

    def __init__(self, jobs: IndexJobs, cache: RedisCache):
        self.jobs = jobs
        self.cache = cache

    async def __call__(self, event: ChangeEvent) -> None:
        await self.handle(event)

    async def handle(self, event: ChangeEvent) -> None:
        with LogContext(event_id=event.event_id, entity_id=event.entity_id):
            try:
                await self._handle(event)
            except Exception:
                record_event_consumed(event.change_kind.value, "failed")
                raise
            record_event_consumed(event.change_kind.value, "ok")

    async def _handle(self, event: ChangeEvent) -> None:
        if event.change_kind == ChangeKind.REINDEX_REQUESTED:
            job_id = await self.jobs.enqueue_reindex_all()
            logger.info(f"Reindex requested; job {job_id}")
            return

        if not event.entity_id:
            logger.warning(f"Dropping {event.topic} event {event.event_id} without entity id")
            return

        if event.change_kind == ChangeKind.DELETED:
            job_id = await self.jobs.enqueue_remove(event.entity_id)
        else:
            job_id = await self.jobs.enqueue_index(event.entity_id)

        await self.invalidate(event.entity_id)
        logger.info(f"Handled {event.topic} for {event.entity_id}; job {job_id}")

    async def invalidate(self, entity_id: str) -> None:
        """Drop the entity's cached lookup and every cached search page.

        Raises:
            CacheUnavailableError: the cache could not be reached
        """
        await self.cache.delete(CacheKeys.entity(entity_id))
        removed = await self.cache.delete_by_prefix(CacheKeys.search_prefix())
        logger.debug(f"Invalidated entity {entity_id} and {removed} search pages")
