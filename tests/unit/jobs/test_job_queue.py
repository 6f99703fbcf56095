"""Tests for the Redis job queue."""

import pytest

from reelindex.jobs.queue import Job, JobQueue, JobStatus
from tests.fakes import FakeRedis


async def claim_one(queue: JobQueue) -> Job:
    jobs = [job async for job in queue.claim_jobs(batch_size=1, timeout=1)]
    assert len(jobs) == 1
    return jobs[0]


class TestJob:
    """Tests for Job dataclass."""

    def test_job_defaults(self) -> None:
        """Job can be created with minimal parameters."""
        job = Job(id="job-1", task="index_entity", payload={"entity_id": "abc"})

        assert job.status == JobStatus.PENDING
        assert job.attempts == 0
        assert job.dedupe_key is None

    def test_job_from_dict(self) -> None:
        """Job deserializes from dictionary."""
        job = Job.from_dict(
            {
                "id": "job-1",
                "task": "remove_entity",
                "payload": {"entity_id": "abc"},
                "status": "retrying",
                "created_at": "2024-01-01T00:00:00+00:00",
                "next_run_at": "2024-01-01T00:00:04+00:00",
                "attempts": 2,
                "max_attempts": 3,
            }
        )

        assert job.status == JobStatus.RETRYING
        assert job.attempts == 2
        assert job.next_run_at is not None


class TestJobQueue:
    """Tests for JobQueue class."""

    @pytest.fixture
    def queue(self, fake_redis: FakeRedis) -> JobQueue:
        return JobQueue(max_attempts=3, backoff_base=2.0, backoff_max=10.0, redis=fake_redis)  # type: ignore[arg-type]

    async def test_enqueue_stores_pending_job(self, queue: JobQueue) -> None:
        """Enqueued job is recorded and listed as pending."""
        job_id = await queue.enqueue("index_entity", {"entity_id": "abc"})

        job = await queue.get_job(job_id)
        assert job is not None
        assert job.status == JobStatus.PENDING
        assert (await queue.get_queue_stats())["pending"] == 1

    async def test_dedupe_collapses_pending_jobs(self, queue: JobQueue) -> None:
        """A second submission with the same key returns the pending job."""
        first = await queue.enqueue("index_entity", {"entity_id": "abc"}, dedupe_key="index:abc")
        second = await queue.enqueue("index_entity", {"entity_id": "abc"}, dedupe_key="index:abc")

        assert first == second
        assert (await queue.get_queue_stats())["pending"] == 1

    async def test_dedupe_key_released_on_claim(self, queue: JobQueue) -> None:
        """A change arriving while the job runs schedules a fresh job."""
        first = await queue.enqueue("index_entity", {"entity_id": "abc"}, dedupe_key="index:abc")
        claimed = await claim_one(queue)

        second = await queue.enqueue("index_entity", {"entity_id": "abc"}, dedupe_key="index:abc")

        assert claimed.id == first
        assert second != first

    async def test_claim_marks_running(self, queue: JobQueue) -> None:
        """Claiming increments attempts and sets RUNNING."""
        await queue.enqueue("reindex_all")

        job = await claim_one(queue)

        assert job.status == JobStatus.RUNNING
        assert job.attempts == 1
        assert (await queue.get_queue_stats())["processing"] == 1

    async def test_claim_empty_queue(self, queue: JobQueue) -> None:
        """Nothing is yielded when no job is pending."""
        assert [job async for job in queue.claim_jobs(timeout=1)] == []

    async def test_complete_job(self, queue: JobQueue) -> None:
        """Completed job stores its result and leaves processing."""
        await queue.enqueue("reindex_all")
        job = await claim_one(queue)

        await queue.complete_job(job.id, {"indexed": 3})

        stored = await queue.get_job(job.id)
        assert stored is not None
        assert stored.status == JobStatus.COMPLETED
        assert stored.result == {"indexed": 3}
        assert (await queue.get_queue_stats())["processing"] == 0

    def test_backoff_is_exponential_and_capped(self, queue: JobQueue) -> None:
        """Delay doubles per attempt up to the cap."""
        assert queue.backoff_delay(1) == 2.0
        assert queue.backoff_delay(2) == 4.0
        assert queue.backoff_delay(3) == 8.0
        assert queue.backoff_delay(4) == 10.0

    async def test_per_job_backoff_override(self, queue: JobQueue) -> None:
        """A job submitted with its own backoff is rescheduled with that base."""
        await queue.enqueue("index_entity", {"entity_id": "abc"}, backoff=0.5)
        job = await claim_one(queue)
        assert job.backoff == 0.5

        await queue.fail_job(job.id, "engine down")

        stored = await queue.get_job(job.id)
        assert stored is not None and stored.next_run_at is not None
        assert stored.started_at is not None
        delay = (stored.next_run_at - stored.started_at).total_seconds()
        assert 0 < delay < 2.0

    async def test_failure_schedules_retry(self, queue: JobQueue) -> None:
        """A failure with attempts left moves the job to the delayed set."""
        await queue.enqueue("index_entity", {"entity_id": "abc"})
        job = await claim_one(queue)

        status = await queue.fail_job(job.id, "engine down")

        assert status == JobStatus.RETRYING
        stats = await queue.get_queue_stats()
        assert stats["delayed"] == 1
        assert stats["pending"] == 0

    async def test_delayed_job_promoted_when_due(self, queue: JobQueue) -> None:
        """Retrying jobs return to pending once their backoff elapsed."""
        await queue.enqueue("index_entity", {"entity_id": "abc"})
        job = await claim_one(queue)
        await queue.fail_job(job.id, "engine down")

        assert await queue.promote_due_jobs(now=0) == 0
        assert await queue.promote_due_jobs(now=1e12) == 1

        retried = await claim_one(queue)
        assert retried.id == job.id
        assert retried.attempts == 2

    async def test_exhausted_job_is_dead(self, queue: JobQueue) -> None:
        """After max attempts the job lands on the dead list."""
        job_id = await queue.enqueue("index_entity", {"entity_id": "abc"}, max_attempts=1)
        await claim_one(queue)

        status = await queue.fail_job(job_id, "engine down")

        assert status == JobStatus.DEAD
        dead = await queue.list_jobs(status=JobStatus.DEAD)
        assert [job.id for job in dead] == [job_id]
        assert dead[0].error == "engine down"

    async def test_no_retry_goes_straight_to_dead(self, queue: JobQueue) -> None:
        """retry=False skips the remaining attempts."""
        job_id = await queue.enqueue("unknown")
        await claim_one(queue)

        assert await queue.fail_job(job_id, "no handler", retry=False) == JobStatus.DEAD

    async def test_dead_list_is_bounded(self, fake_redis: FakeRedis) -> None:
        """Only the most recent dead jobs are retained."""
        queue = JobQueue(failed_retention=2, redis=fake_redis)  # type: ignore[arg-type]
        for _ in range(3):
            job_id = await queue.enqueue("index_entity", max_attempts=1)
            await claim_one(queue)
            await queue.fail_job(job_id, "boom")

        assert (await queue.get_queue_stats())["dead"] == 2

    async def test_requeue_dead_job(self, queue: JobQueue) -> None:
        """Requeue resets attempts and makes the job pending again."""
        job_id = await queue.enqueue("index_entity", max_attempts=1)
        await claim_one(queue)
        await queue.fail_job(job_id, "boom")

        assert await queue.requeue(job_id) is True

        job = await queue.get_job(job_id)
        assert job is not None
        assert job.status == JobStatus.PENDING
        assert job.attempts == 0
        assert (await queue.get_queue_stats())["dead"] == 0

    async def test_requeue_rejects_live_job(self, queue: JobQueue) -> None:
        """Only dead jobs can be requeued."""
        job_id = await queue.enqueue("index_entity")

        assert await queue.requeue(job_id) is False
        assert await queue.requeue("missing") is False
