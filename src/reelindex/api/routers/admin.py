"""Administrative endpoints for index maintenance and job inspection.

- POST /admin/reindex               - publish a reindex request
- POST /admin/cleanup               - run the soft-delete purge now
- GET  /admin/jobs/stats            - queue counters
- GET  /admin/jobs/dead             - most recent dead jobs
- GET  /admin/jobs/{id}             - one job record
- POST /admin/jobs/{id}/requeue     - retry a dead job
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from reelindex.api.deps import change_publisher, index_jobs, job_queue
from reelindex.api.errors import BadRequestError, NotFoundError, ServiceUnavailableError
from reelindex.events.publisher import ChangePublisher
from reelindex.jobs.queue import Job, JobQueue, JobStatus
from reelindex.jobs.tasks import IndexJobs

router = APIRouter(prefix="/admin", tags=["Admin"])


class JobResponse(BaseModel):
    """Job details response."""

    id: str
    task: str
    status: str
    payload: dict[str, Any]
    created_at: str
    started_at: str | None = None
    completed_at: str | None = None
    next_run_at: str | None = None
    result: dict[str, Any] | None = None
    error: str | None = None
    attempts: int
    max_attempts: int

    @classmethod
    def from_job(cls, job: Job) -> JobResponse:
        return cls.model_validate(job.to_dict())


class QueueStatsResponse(BaseModel):
    pending: int
    processing: int
    delayed: int
    dead: int


@router.post("/reindex", status_code=202)
async def request_reindex(
    publisher: ChangePublisher = Depends(change_publisher),
) -> dict[str, str]:
    """Ask the indexing pipeline to rebuild the whole index."""
    event = await publisher.request_reindex()
    if event is None:
        raise ServiceUnavailableError("Could not publish the reindex request")
    return {"eventId": event.event_id}


@router.post("/cleanup", status_code=202)
async def request_cleanup(jobs: IndexJobs = Depends(index_jobs)) -> dict[str, str]:
    """Enqueue the soft-delete purge outside its schedule."""
    return {"jobId": await jobs.enqueue_cleanup()}


@router.get("/jobs/stats", response_model=QueueStatsResponse)
async def queue_stats(queue: JobQueue = Depends(job_queue)) -> QueueStatsResponse:
    return QueueStatsResponse(**await queue.get_queue_stats())


@router.get("/jobs/dead", response_model=list[JobResponse])
async def dead_jobs(
    limit: int = Query(100, ge=1, le=1000),
    queue: JobQueue = Depends(job_queue),
) -> list[JobResponse]:
    jobs = await queue.list_jobs(status=JobStatus.DEAD, limit=limit)
    return [JobResponse.from_job(job) for job in jobs]


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, queue: JobQueue = Depends(job_queue)) -> JobResponse:
    job = await queue.get_job(job_id)
    if job is None:
        raise NotFoundError("Job", job_id)
    return JobResponse.from_job(job)


@router.post("/jobs/{job_id}/requeue", response_model=JobResponse)
async def requeue_job(job_id: str, queue: JobQueue = Depends(job_queue)) -> JobResponse:
    """Give a dead job a fresh set of attempts."""
    job = await queue.get_job(job_id)
    if job is None:
        raise NotFoundError("Job", job_id)
    if not await queue.requeue(job_id):
        raise BadRequestError(f"Cannot requeue job in {job.status.value} status")

    requeued = await queue.get_job(job_id)
    return JobResponse.from_job(requeued or job)
