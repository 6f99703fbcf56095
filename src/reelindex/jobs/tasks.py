"""Index maintenance tasks and their submission helpers.

Task names:
- index_entity: project one content item into the search index
- remove_entity: drop one content item from the search index
- reindex_all: re-project every active content item
- cleanup_soft_deletes: purge items soft-deleted past the retention window

Example:
    jobs = IndexJobs(queue)
    await jobs.enqueue_index(item.id)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from reelindex.config import settings
from reelindex.jobs.queue import JobQueue

if TYPE_CHECKING:
    from reelindex.jobs.scheduler import JobScheduler, ScheduledJob

logger = logging.getLogger(__name__)


class JobKind(str, Enum):
    INDEX_ENTITY = "index_entity"
    REMOVE_ENTITY = "remove_entity"
    REINDEX_ALL = "reindex_all"
    CLEANUP_SOFT_DELETES = "cleanup_soft_deletes"


CLEANUP_SCHEDULE = JobKind.CLEANUP_SOFT_DELETES.value


class IndexJobs:
    """Submits index jobs with per-entity dedupe keys.

    Repeated changes to one entity collapse into a single pending job;
    the processor reads the latest state from the store whenever it runs.
    """

    def __init__(self, queue: JobQueue):
        self.queue = queue

    async def enqueue_index(self, entity_id: UUID | str) -> str:
        return await self.queue.enqueue(
            JobKind.INDEX_ENTITY.value,
            {"entity_id": str(entity_id)},
            dedupe_key=f"index:{entity_id}",
        )

    async def enqueue_remove(self, entity_id: UUID | str) -> str:
        return await self.queue.enqueue(
            JobKind.REMOVE_ENTITY.value,
            {"entity_id": str(entity_id)},
            dedupe_key=f"remove:{entity_id}",
        )

    async def enqueue_reindex_all(self) -> str:
        return await self.queue.enqueue(JobKind.REINDEX_ALL.value, dedupe_key="reindex_all")

    async def enqueue_cleanup(self) -> str:
        """Manual cleanup trigger; collapses onto a pending scheduled run."""
        return await self.queue.enqueue(
            JobKind.CLEANUP_SOFT_DELETES.value, dedupe_key=CLEANUP_SCHEDULE
        )


async def register_recurring_jobs(scheduler: JobScheduler) -> list[ScheduledJob]:
    """Register every recurring job under its fixed name.

    Safe to call at every start: registration replaces by name.
    """
    cleanup = await scheduler.register(
        CLEANUP_SCHEDULE,
        task=JobKind.CLEANUP_SOFT_DELETES.value,
        cron=settings.cleanup_cron,
    )
    return [cleanup]
