"""FastAPI dependencies resolving the shared runtime components."""

from __future__ import annotations

from reelindex.content.service import ContentWriter
from reelindex.discovery.service import DiscoveryService
from reelindex.events.publisher import ChangePublisher
from reelindex.events.runtime import get_event_bus
from reelindex.jobs.queue import JobQueue
from reelindex.jobs.tasks import IndexJobs
from reelindex.runtime import get_content_writer, get_discovery_service, get_job_queue


async def discovery_service() -> DiscoveryService:
    return await get_discovery_service()


def content_writer() -> ContentWriter:
    return get_content_writer()


def change_publisher() -> ChangePublisher:
    return ChangePublisher(get_event_bus())


async def job_queue() -> JobQueue:
    return await get_job_queue()


async def index_jobs() -> IndexJobs:
    return IndexJobs(await get_job_queue())
