"""Index processor: projects store state into the search index.

Every job re-reads the entity from the store, including soft-deleted rows,
so the outcome depends only on the current persisted state and never on
the order or content of the change events that triggered it. Running the
same job twice leaves the index unchanged.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelindex.jobs.queue import Job
from reelindex.jobs.tasks import JobKind
from reelindex.jobs.worker import JobWorker, job_handler
from reelindex.persistence.db import session_context
from reelindex.persistence.repositories import ContentRepository
from reelindex.search.documents import SearchDocument
from reelindex.search.index import SearchIndex

logger = logging.getLogger(__name__)


class IndexProcessor:
    """Handles index_entity, remove_entity and reindex_all jobs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        search_index: SearchIndex,
    ):
        self.session_factory = session_factory
        self.search_index = search_index

    async def index_entity(self, entity_id: UUID | str) -> str:
        """Bring the index document for ``entity_id`` in line with the store.

        Returns:
            "indexed", "removed" (entity is soft-deleted) or "missing"
        """
        entity_id = UUID(str(entity_id))
        async with session_context(self.session_factory) as session:
            item = await ContentRepository(session).get(entity_id, include_deleted=True)

        if item is None:
            logger.info(f"Entity {entity_id} no longer exists; nothing to index")
            return "missing"

        if item.is_deleted:
            await self.remove_entity(entity_id)
            return "removed"

        await self.search_index.upsert(SearchDocument.from_item(item))
        logger.info(f"Indexed entity {entity_id}")
        return "indexed"

    async def remove_entity(self, entity_id: UUID | str) -> bool:
        """Remove the document; an absent document is not an error.

        Raises:
            SearchUnavailableError: the engine failed; the job is retried
        """
        removed = await self.search_index.remove(entity_id)
        if removed:
            logger.info(f"Removed entity {entity_id} from index")
        else:
            logger.info(f"Entity {entity_id} was not in the index")
        return removed

    async def reindex_all(self) -> int:
        """Upsert every active entity, oldest publication date first.

        Returns:
            Number of documents written
        """
        count = 0
        async with session_context(self.session_factory) as session:
            async for item in ContentRepository(session).iter_active():
                await self.search_index.upsert(SearchDocument.from_item(item))
                count += 1
                if count % 500 == 0:
                    logger.info(f"Reindex progress: {count} documents")

        logger.info(f"Reindex complete: {count} documents")
        return count

    def register(self, worker: JobWorker) -> None:
        """Register this processor's job handlers on ``worker``."""

        @job_handler(JobKind.INDEX_ENTITY.value)
        async def handle_index_entity(job: Job) -> dict[str, Any]:
            return {"outcome": await self.index_entity(job.payload["entity_id"])}

        @job_handler(JobKind.REMOVE_ENTITY.value)
        async def handle_remove_entity(job: Job) -> dict[str, Any]:
            return {"removed": await self.remove_entity(job.payload["entity_id"])}

        @job_handler(JobKind.REINDEX_ALL.value)
        async def handle_reindex_all(job: Job) -> dict[str, Any]:
            return {"indexed": await self.reindex_all()}

        for handler in (handle_index_entity, handle_remove_entity, handle_reindex_all):
            worker.register_handler(handler.__job_task__, handler)  # type: ignore[attr-defined]
