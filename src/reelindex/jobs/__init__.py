"""Background jobs for index maintenance.

Provides a distributed job queue with:
- Redis-backed job storage and dedupe keys
- Atomic job claiming with BRPOPLPUSH
- Retry with exponential backoff and a bounded dead list
- Cron scheduling with idempotent named registration

Example:
    from reelindex.jobs import IndexJobs, JobQueue, JobWorker

    queue = JobQueue()
    await IndexJobs(queue).enqueue_index(item.id)

    worker = JobWorker(queue)
    processor.register(worker)
    await worker.run()
"""

from reelindex.jobs.queue import (
    DEFAULT_JOB_TTL,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RESULT_TTL,
    Job,
    JobQueue,
    JobStatus,
)
from reelindex.jobs.scheduler import CronExpression, JobScheduler, ScheduledJob
from reelindex.jobs.tasks import CLEANUP_SCHEDULE, IndexJobs, JobKind, register_recurring_jobs
from reelindex.jobs.worker import JobHandler, JobWorker, WorkerConfig, job_handler

__all__ = [
    # Queue
    "Job",
    "JobQueue",
    "JobStatus",
    "DEFAULT_JOB_TTL",
    "DEFAULT_RESULT_TTL",
    "DEFAULT_MAX_ATTEMPTS",
    # Worker
    "JobWorker",
    "JobHandler",
    "WorkerConfig",
    "job_handler",
    # Tasks
    "JobKind",
    "IndexJobs",
    "CLEANUP_SCHEDULE",
    "register_recurring_jobs",
    # Scheduler
    "JobScheduler",
    "ScheduledJob",
    "CronExpression",
]
