"""Process-wide wiring of pipeline components.

Each accessor builds its component from settings on first use and returns
the same instance afterwards. The API, the CLI commands and the workers all
go through these accessors so they share one Redis client, one session
factory and one search client per process.
"""

from __future__ import annotations

import logging

from reelindex.cache.redis import RedisCache, close_redis, get_redis
from reelindex.config import settings
from reelindex.content.service import ContentWriter
from reelindex.discovery.service import DiscoveryService
from reelindex.events.publisher import ChangePublisher
from reelindex.events.runtime import get_event_bus, stop_event_bus
from reelindex.indexing.listener import ChangeListener
from reelindex.indexing.processor import IndexProcessor
from reelindex.indexing.reconciliation import ReconciliationJob
from reelindex.jobs.queue import JobQueue
from reelindex.jobs.scheduler import JobScheduler
from reelindex.jobs.tasks import IndexJobs, register_recurring_jobs
from reelindex.jobs.worker import JobWorker, WorkerConfig
from reelindex.persistence.db import close_db, get_session_factory
from reelindex.search.index import close_search, get_search_index

logger = logging.getLogger(__name__)

_job_queue: JobQueue | None = None
_cache: RedisCache | None = None


async def get_job_queue() -> JobQueue:
    global _job_queue
    if _job_queue is None:
        _job_queue = JobQueue()
        await _job_queue.initialize()
    return _job_queue


async def get_cache() -> RedisCache:
    global _cache
    if _cache is None:
        _cache = RedisCache(await get_redis(), ttl=settings.cache_ttl)
    return _cache


async def get_discovery_service() -> DiscoveryService:
    return DiscoveryService(get_search_index(), await get_cache(), get_session_factory())


def get_content_writer() -> ContentWriter:
    return ContentWriter(get_session_factory(), ChangePublisher(get_event_bus()))


async def build_listener() -> ChangeListener:
    """Listener subscribed to the configured event bus (not yet started)."""
    listener = ChangeListener(IndexJobs(await get_job_queue()), await get_cache())
    await get_event_bus().subscribe(listener)
    return listener


async def build_worker(config: WorkerConfig | None = None) -> JobWorker:
    """Worker with every index maintenance handler registered."""
    search_index = get_search_index()
    await search_index.ensure_index()

    worker = JobWorker(await get_job_queue(), config)
    IndexProcessor(get_session_factory(), search_index).register(worker)
    ReconciliationJob(get_session_factory(), search_index).register(worker)
    return worker


async def build_scheduler() -> JobScheduler:
    """Scheduler with the recurring jobs registered."""
    scheduler = JobScheduler(
        await get_job_queue(),
        use_leader_election=settings.scheduler_leader_election,
    )
    await register_recurring_jobs(scheduler)
    return scheduler


async def shutdown() -> None:
    """Release every shared connection."""
    global _job_queue, _cache
    await stop_event_bus()
    await close_search()
    await close_redis()
    await close_db()
    _job_queue = None
    _cache = None
    logger.info("Runtime resources released")
