"""Tests for the index processor against a SQLite store."""

from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reelindex.content.model import ContentPatch
from reelindex.indexing.processor import IndexProcessor
from reelindex.jobs.queue import JobQueue, JobStatus
from reelindex.jobs.tasks import IndexJobs
from reelindex.jobs.worker import JobWorker, WorkerConfig
from reelindex.persistence.db import session_context
from reelindex.persistence.repositories import ContentRepository
from reelindex.search.query import SearchQuery
from tests.conftest import make_draft
from tests.fakes import FakeRedis, FakeSearchIndex


class TestIndexProcessor:
    """index_entity converges on the persisted state."""

    async def test_index_active_entity(
        self, session_factory: async_sessionmaker[AsyncSession], search_index: FakeSearchIndex
    ) -> None:
        async with session_context(session_factory) as session:
            item = await ContentRepository(session).create(make_draft())
        processor = IndexProcessor(session_factory, search_index)  # type: ignore[arg-type]

        assert await processor.index_entity(item.id) == "indexed"

        document = search_index.documents[str(item.id)]
        assert document.title == "Space Documentary"
        assert document.deleted_at is None

    async def test_index_entity_is_idempotent(
        self, session_factory: async_sessionmaker[AsyncSession], search_index: FakeSearchIndex
    ) -> None:
        """Running twice leaves the same single document."""
        async with session_context(session_factory) as session:
            item = await ContentRepository(session).create(make_draft())
        processor = IndexProcessor(session_factory, search_index)  # type: ignore[arg-type]

        await processor.index_entity(item.id)
        first = search_index.documents[str(item.id)].model_dump()
        await processor.index_entity(item.id)

        assert len(search_index.documents) == 1
        assert search_index.documents[str(item.id)].model_dump() == first

    async def test_stale_index_after_delete_removes(
        self, session_factory: async_sessionmaker[AsyncSession], search_index: FakeSearchIndex
    ) -> None:
        """An index job running after a soft delete removes the document."""
        async with session_context(session_factory) as session:
            item = await ContentRepository(session).create(make_draft())
        processor = IndexProcessor(session_factory, search_index)  # type: ignore[arg-type]
        await processor.index_entity(item.id)

        async with session_context(session_factory) as session:
            await ContentRepository(session).soft_delete(item.id)

        assert await processor.index_entity(item.id) == "removed"
        assert str(item.id) not in search_index.documents

    async def test_events_out_of_order_converge(
        self, session_factory: async_sessionmaker[AsyncSession], search_index: FakeSearchIndex
    ) -> None:
        """Whatever order jobs run in, the index shows the latest state."""
        async with session_context(session_factory) as session:
            repo = ContentRepository(session)
            item = await repo.create(make_draft(title="First title"))
            await repo.update(item.id, ContentPatch(title="Second title"))
        processor = IndexProcessor(session_factory, search_index)  # type: ignore[arg-type]

        # "updated" job handled before the "created" one
        await processor.index_entity(item.id)
        await processor.index_entity(item.id)

        assert search_index.documents[str(item.id)].title == "Second title"

    async def test_missing_entity_is_noop(
        self, session_factory: async_sessionmaker[AsyncSession], search_index: FakeSearchIndex
    ) -> None:
        processor = IndexProcessor(session_factory, search_index)  # type: ignore[arg-type]

        assert await processor.index_entity(uuid4()) == "missing"
        assert search_index.documents == {}

    async def test_remove_absent_is_not_error(
        self, session_factory: async_sessionmaker[AsyncSession], search_index: FakeSearchIndex
    ) -> None:
        processor = IndexProcessor(session_factory, search_index)  # type: ignore[arg-type]

        assert await processor.remove_entity(uuid4()) is False

    async def test_reindex_all_skips_deleted(
        self, session_factory: async_sessionmaker[AsyncSession], search_index: FakeSearchIndex
    ) -> None:
        async with session_context(session_factory) as session:
            repo = ContentRepository(session)
            keep = [await repo.create(make_draft(title=f"Episode {n}")) for n in range(3)]
            gone = await repo.create(make_draft(title="Deleted"))
            await repo.soft_delete(gone.id)
        processor = IndexProcessor(session_factory, search_index)  # type: ignore[arg-type]

        assert await processor.reindex_all() == 3
        assert set(search_index.documents) == {str(item.id) for item in keep}

    async def test_handlers_run_through_worker(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        search_index: FakeSearchIndex,
        fake_redis: FakeRedis,
    ) -> None:
        """Queued index jobs reach the processor via the worker."""
        async with session_context(session_factory) as session:
            item = await ContentRepository(session).create(make_draft())
        queue = JobQueue(redis=fake_redis)  # type: ignore[arg-type]
        worker = JobWorker(queue, WorkerConfig(install_signal_handlers=False))
        IndexProcessor(session_factory, search_index).register(worker)  # type: ignore[arg-type]

        job_id = await IndexJobs(queue).enqueue_index(item.id)
        await worker.run_once()

        job = await queue.get_job(job_id)
        assert job is not None
        assert job.status == JobStatus.COMPLETED
        assert job.result == {"outcome": "indexed"}
        page = await search_index.search(SearchQuery(q="space"))
        assert page.total == 1
