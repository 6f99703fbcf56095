"""Redis-backed job queue for index maintenance.

Provides a distributed job queue with:
- Deduplicated submission: one pending job per dedupe key
- Atomic job claiming via BRPOPLPUSH
- Retry with exponential backoff through a delayed sorted set
- A bounded dead list for jobs that exhausted their attempts
- Job record storage with TTL

Example:
    queue = JobQueue()
    await queue.initialize()

    job_id = await queue.enqueue("index_entity", {"entity_id": id}, dedupe_key=f"index:{id}")

    async for job in queue.claim_jobs():
        result = await process_job(job)
        await queue.complete_job(job.id, result)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, TypeVar, cast
from uuid import uuid4

import orjson

from reelindex.cache.redis import get_redis
from reelindex.config import settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

T = TypeVar("T")


def _await_redis(result: Awaitable[T] | T) -> Awaitable[T]:
    """Cast redis-py async results to an awaitable for mypy."""
    return cast(Awaitable[T], result)


def _decode(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


logger = logging.getLogger(__name__)

KEY_PREFIX = "reelindex:jobs"

DEFAULT_JOB_TTL = 86400 * 7  # 7 days
DEFAULT_RESULT_TTL = 86400  # 24 hours
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_CLAIM_TIMEOUT = 5  # seconds


class JobStatus(str, Enum):
    """Job execution status."""

    PENDING = "pending"
    RUNNING = "running"
    RETRYING = "retrying"  # Waiting in the delayed set
    COMPLETED = "completed"
    DEAD = "dead"  # Parked after max attempts


@dataclass
class Job:
    """Job definition with metadata and state."""

    id: str
    task: str
    payload: dict[str, Any]
    status: JobStatus = JobStatus.PENDING
    dedupe_key: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: datetime | None = None
    completed_at: datetime | None = None
    next_run_at: datetime | None = None
    result: dict[str, Any] | None = None
    error: str | None = None
    attempts: int = 0
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    # Base delay override in seconds; None uses the queue default
    backoff: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize job to dictionary."""

        def iso(value: datetime | None) -> str | None:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "task": self.task,
            "payload": self.payload,
            "status": self.status.value,
            "dedupe_key": self.dedupe_key,
            "created_at": self.created_at.isoformat(),
            "started_at": iso(self.started_at),
            "completed_at": iso(self.completed_at),
            "next_run_at": iso(self.next_run_at),
            "result": self.result,
            "error": self.error,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "backoff": self.backoff,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Job:
        """Deserialize job from dictionary."""

        def parse(key: str) -> datetime | None:
            value = data.get(key)
            return datetime.fromisoformat(value) if value else None

        return cls(
            id=data["id"],
            task=data["task"],
            payload=data.get("payload") or {},
            status=JobStatus(data["status"]),
            dedupe_key=data.get("dedupe_key"),
            created_at=datetime.fromisoformat(data["created_at"]),
            started_at=parse("started_at"),
            completed_at=parse("completed_at"),
            next_run_at=parse("next_run_at"),
            result=data.get("result"),
            error=data.get("error"),
            attempts=data.get("attempts", 0),
            max_attempts=data.get("max_attempts", DEFAULT_MAX_ATTEMPTS),
            backoff=data.get("backoff"),
        )


class JobQueue:
    """Redis-backed distributed job queue.

    Keys under ``prefix``:
    - ``job:<id>``: job record (JSON)
    - ``pending`` / ``processing``: lists moved atomically by BRPOPLPUSH
    - ``delayed``: sorted set of retrying job ids scored by due time
    - ``dead``: most recent dead job ids, trimmed to ``failed_retention``
    - ``dedupe:<key>``: id of the pending job holding that key

    A dedupe key is held from submission until the job is claimed, so a
    burst of changes to one entity collapses into a single pending job
    while a change arriving mid-run still schedules a fresh one.
    """

    def __init__(
        self,
        job_ttl: int = DEFAULT_JOB_TTL,
        result_ttl: int = DEFAULT_RESULT_TTL,
        max_attempts: int = settings.job_max_attempts,
        backoff_base: float = settings.job_backoff_base,
        backoff_max: float = settings.job_backoff_max,
        failed_retention: int = settings.job_failed_retention,
        prefix: str = KEY_PREFIX,
        redis: Redis | None = None,
    ) -> None:
        self.job_ttl = job_ttl
        self.result_ttl = result_ttl
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.failed_retention = failed_retention
        self.prefix = prefix
        self.pending_key = f"{prefix}:pending"
        self.processing_key = f"{prefix}:processing"
        self.delayed_key = f"{prefix}:delayed"
        self.dead_key = f"{prefix}:dead"
        self._redis = redis

    async def initialize(self) -> None:
        if self._redis is None:
            self._redis = await get_redis()
            logger.info("Job queue initialized")

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            await self.initialize()
        return self._redis  # type: ignore[return-value]

    def _job_key(self, job_id: str) -> str:
        return f"{self.prefix}:job:{job_id}"

    def _dedupe_key(self, dedupe_key: str) -> str:
        return f"{self.prefix}:dedupe:{dedupe_key}"

    async def _save(self, job: Job, ttl: int | None = None) -> None:
        redis = await self._get_redis()
        await _await_redis(
            redis.set(self._job_key(job.id), orjson.dumps(job.to_dict()), ex=ttl or self.job_ttl)
        )

    def backoff_delay(self, attempts: int, base: float | None = None) -> float:
        """Seconds to wait before the next attempt after ``attempts`` failures."""
        base = self.backoff_base if base is None else base
        return float(min(base * (2 ** max(attempts - 1, 0)), self.backoff_max))

    async def enqueue(
        self,
        task: str,
        payload: dict[str, Any] | None = None,
        dedupe_key: str | None = None,
        max_attempts: int | None = None,
        backoff: float | None = None,
    ) -> str:
        """Submit a job, collapsing onto a pending job with the same key.

        Args:
            task: Task name (e.g. "index_entity")
            payload: Task-specific data
            dedupe_key: At most one pending job exists per key
            max_attempts: Override the default attempt limit
            backoff: Override the base retry delay in seconds

        Returns:
            Id of the new job, or of the pending job it collapsed onto
        """
        redis = await self._get_redis()

        job = Job(
            id=str(uuid4()),
            task=task,
            payload=payload or {},
            dedupe_key=dedupe_key,
            max_attempts=max_attempts if max_attempts is not None else self.max_attempts,
            backoff=backoff,
        )

        if dedupe_key is not None:
            existing_id = await self._claim_dedupe_key(redis, dedupe_key, job.id)
            if existing_id is not None:
                logger.debug(f"Job deduplicated onto {existing_id} ({task}, {dedupe_key})")
                return existing_id

        await self._save(job)
        await _await_redis(redis.lpush(self.pending_key, job.id))

        logger.info(f"Job submitted: {job.id} ({task})")
        return job.id

    async def _claim_dedupe_key(self, redis: Redis, dedupe_key: str, job_id: str) -> str | None:
        """Reserve ``dedupe_key`` for ``job_id``.

        Returns the id of the job already holding the key, or None when the
        key now belongs to ``job_id``.
        """
        key = self._dedupe_key(dedupe_key)
        if await _await_redis(redis.set(key, job_id, nx=True, ex=self.job_ttl)):
            return None

        holder = await _await_redis(redis.get(key))
        if holder is not None:
            holder_id = _decode(holder)
            existing = await self.get_job(holder_id)
            if existing is not None and existing.status == JobStatus.PENDING:
                return holder_id

        # Stale reservation: the holder vanished or already left pending
        await _await_redis(redis.set(key, job_id, ex=self.job_ttl))
        return None

    async def _release_dedupe_key(self, redis: Redis, job: Job) -> None:
        if job.dedupe_key is None:
            return
        key = self._dedupe_key(job.dedupe_key)
        holder = await _await_redis(redis.get(key))
        if holder is not None and _decode(holder) == job.id:
            await _await_redis(redis.delete(key))

    async def get_job(self, job_id: str) -> Job | None:
        redis = await self._get_redis()
        data = await _await_redis(redis.get(self._job_key(job_id)))

        if data is None:
            return None

        return Job.from_dict(orjson.loads(data))

    async def promote_due_jobs(self, now: float | None = None) -> int:
        """Move retrying jobs whose backoff elapsed back onto the pending list.

        Returns:
            Number of jobs promoted
        """
        redis = await self._get_redis()
        now = time.time() if now is None else now
        due = await _await_redis(redis.zrangebyscore(self.delayed_key, 0, now))

        promoted = 0
        for raw_id in due:
            # ZREM decides the winner when several workers promote at once
            if await _await_redis(redis.zrem(self.delayed_key, raw_id)):
                await _await_redis(redis.lpush(self.pending_key, raw_id))
                promoted += 1

        if promoted:
            logger.debug(f"Promoted {promoted} delayed jobs")
        return promoted

    async def claim_jobs(
        self,
        batch_size: int = 1,
        timeout: int | None = None,
    ) -> AsyncIterator[Job]:
        """Claim jobs from the queue for processing.

        Uses BRPOPLPUSH for atomic job claiming:
        - Blocks until a job is available
        - Atomically moves job from pending to processing
        - Prevents duplicate processing

        Args:
            batch_size: Number of jobs to claim
            timeout: Block timeout in seconds (None for forever)

        Yields:
            Jobs ready for processing
        """
        redis = await self._get_redis()
        timeout_sec = timeout if timeout is not None else 0

        await self.promote_due_jobs()

        for _ in range(batch_size):
            job_id_bytes = cast(
                bytes | str | None,
                await _await_redis(
                    redis.brpoplpush(self.pending_key, self.processing_key, timeout=timeout_sec)
                ),
            )

            if job_id_bytes is None:
                break

            job_id = _decode(job_id_bytes)
            job = await self.get_job(job_id)

            if job is None:
                # Job expired or deleted, remove from processing
                await _await_redis(redis.lrem(self.processing_key, 1, job_id))
                continue

            await self._release_dedupe_key(redis, job)

            job.status = JobStatus.RUNNING
            job.started_at = datetime.now(timezone.utc)
            job.next_run_at = None
            job.attempts += 1
            await self._save(job)

            logger.info(f"Job claimed: {job.id} ({job.task}, attempt {job.attempts})")
            yield job

    async def complete_job(
        self,
        job_id: str,
        result: dict[str, Any] | None = None,
    ) -> None:
        redis = await self._get_redis()
        job = await self.get_job(job_id)

        if job is None:
            logger.warning(f"Job not found for completion: {job_id}")
            return

        job.status = JobStatus.COMPLETED
        job.completed_at = datetime.now(timezone.utc)
        job.result = result
        job.error = None

        await self._save(job, ttl=self.result_ttl)
        await _await_redis(redis.lrem(self.processing_key, 1, job_id))

        logger.info(f"Job completed: {job_id}")

    async def fail_job(
        self,
        job_id: str,
        error: str,
        retry: bool = True,
    ) -> JobStatus | None:
        """Record a failed attempt.

        The job is scheduled again after its backoff delay while attempts
        remain; otherwise it is marked dead and parked on the dead list.

        Returns:
            The job's new status, or None if the job record is gone
        """
        redis = await self._get_redis()
        job = await self.get_job(job_id)

        if job is None:
            logger.warning(f"Job not found for failure: {job_id}")
            return None

        job.error = error
        await _await_redis(redis.lrem(self.processing_key, 1, job_id))

        if retry and job.attempts < job.max_attempts:
            delay = self.backoff_delay(job.attempts, job.backoff)
            due = time.time() + delay
            job.status = JobStatus.RETRYING
            job.next_run_at = datetime.fromtimestamp(due, tz=timezone.utc)
            await self._save(job)
            await _await_redis(redis.zadd(self.delayed_key, {job_id: due}))
            logger.info(
                f"Job scheduled for retry in {delay:.1f}s: {job_id} "
                f"(attempt {job.attempts}/{job.max_attempts})"
            )
        else:
            job.status = JobStatus.DEAD
            job.completed_at = datetime.now(timezone.utc)
            await self._save(job)
            await _await_redis(redis.lpush(self.dead_key, job_id))
            await _await_redis(redis.ltrim(self.dead_key, 0, self.failed_retention - 1))
            logger.warning(f"Job dead after {job.attempts} attempts: {job_id} ({job.task}): {error}")

        return job.status

    async def requeue(self, job_id: str) -> bool:
        """Give a dead job a fresh set of attempts.

        Returns:
            True if the job was dead and is pending again
        """
        redis = await self._get_redis()
        job = await self.get_job(job_id)

        if job is None or job.status != JobStatus.DEAD:
            return False

        job.status = JobStatus.PENDING
        job.attempts = 0
        job.error = None
        job.completed_at = None
        await self._save(job)
        await _await_redis(redis.lrem(self.dead_key, 1, job_id))
        await _await_redis(redis.lpush(self.pending_key, job_id))

        logger.info(f"Dead job requeued: {job_id} ({job.task})")
        return True

    async def list_jobs(
        self,
        status: JobStatus | None = None,
        limit: int = 100,
    ) -> list[Job]:
        """List jobs, optionally filtered by status.

        Args:
            status: Filter by status (None for all)
            limit: Maximum jobs to return
        """
        redis = await self._get_redis()

        if status == JobStatus.PENDING:
            job_ids = await _await_redis(redis.lrange(self.pending_key, 0, limit - 1))
        elif status == JobStatus.RUNNING:
            job_ids = await _await_redis(redis.lrange(self.processing_key, 0, limit - 1))
        elif status == JobStatus.RETRYING:
            job_ids = await _await_redis(redis.zrange(self.delayed_key, 0, limit - 1))
        elif status == JobStatus.DEAD:
            job_ids = await _await_redis(redis.lrange(self.dead_key, 0, limit - 1))
        else:
            pending = await _await_redis(redis.lrange(self.pending_key, 0, limit - 1))
            processing = await _await_redis(redis.lrange(self.processing_key, 0, limit - 1))
            delayed = await _await_redis(redis.zrange(self.delayed_key, 0, limit - 1))
            dead = await _await_redis(redis.lrange(self.dead_key, 0, limit - 1))
            job_ids = list(pending) + list(processing) + list(delayed) + list(dead)

        jobs: list[Job] = []
        for raw_id in job_ids[:limit]:
            job = await self.get_job(_decode(raw_id))
            if job is not None and (status is None or job.status == status):
                jobs.append(job)

        return jobs

    async def get_queue_stats(self) -> dict[str, int]:
        """Counts of pending, processing, delayed and dead jobs."""
        redis = await self._get_redis()

        return {
            "pending": await _await_redis(redis.llen(self.pending_key)),
            "processing": await _await_redis(redis.llen(self.processing_key)),
            "delayed": await _await_redis(redis.zcard(self.delayed_key)),
            "dead": await _await_redis(redis.llen(self.dead_key)),
        }
