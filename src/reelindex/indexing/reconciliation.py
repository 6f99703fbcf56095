"""Reconciliation sweep for long soft-deleted content.

Soft-deleted items stay in the store for a retention window (90 days by
default). The sweep then removes each one from the search index and only
afterwards deletes it from the store, so a store row never disappears
while its document might still be served.

Runs daily from the scheduler and can be triggered by hand.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelindex.config import settings
from reelindex.jobs.queue import Job
from reelindex.jobs.tasks import JobKind
from reelindex.jobs.worker import JobWorker, job_handler
from reelindex.persistence.db import session_context
from reelindex.persistence.repositories import ContentRepository
from reelindex.search.index import SearchIndex

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Outcome of one sweep."""

    cutoff: datetime
    found: int = 0
    removed_from_index: int = 0
    purged: int = 0
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["cutoff"] = self.cutoff.isoformat()
        return data


class ReconciliationJob:
    """Purges content soft-deleted before the retention cutoff."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        search_index: SearchIndex,
        retention_days: int = settings.cleanup_retention_days,
    ):
        self.session_factory = session_factory
        self.search_index = search_index
        self.retention_days = retention_days

    def cutoff(self, now: datetime | None = None) -> datetime:
        return (now or datetime.now(timezone.utc)) - timedelta(days=self.retention_days)

    async def run(self, now: datetime | None = None) -> CleanupResult:
        """Sweep once.

        Items whose index removal fails are logged and left in the store;
        the next sweep picks them up again.
        """
        result = CleanupResult(cutoff=self.cutoff(now))

        async with session_context(self.session_factory) as session:
            expired = await ContentRepository(session).find_soft_deleted_before(result.cutoff)
        result.found = len(expired)
        if not expired:
            logger.info(f"Cleanup: nothing soft-deleted before {result.cutoff.isoformat()}")
            return result

        purgeable: list[UUID] = []
        for item in expired:
            try:
                await self.search_index.remove(item.id)
            except Exception as e:
                logger.error(f"Cleanup: failed to remove {item.id} from index: {e}")
                result.failed.append(str(item.id))
                continue
            result.removed_from_index += 1
            purgeable.append(item.id)

        if purgeable:
            async with session_context(self.session_factory) as session:
                result.purged = await ContentRepository(session).hard_delete(purgeable)

        logger.info(
            f"Cleanup complete: found={result.found} purged={result.purged} "
            f"failed={len(result.failed)}"
        )
        return result

    def register(self, worker: JobWorker) -> None:
        @job_handler(JobKind.CLEANUP_SOFT_DELETES.value)
        async def handle_cleanup(job: Job) -> dict[str, Any]:
            return (await self.run()).to_dict()

        worker.register_handler(JobKind.CLEANUP_SOFT_DELETES.value, handle_cleanup)
