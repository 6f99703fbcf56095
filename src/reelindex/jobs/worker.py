"""Background worker for processing queued index jobs.

Provides a worker that:
- Claims jobs with bounded concurrency
- Dispatches each job to the handler registered for its task
- Reports failures back to the queue, which applies retry and backoff
- Supports graceful shutdown

Example:
    worker = JobWorker(queue, WorkerConfig(concurrency=5))
    processor.register(worker)

    # Run worker (blocks until shutdown)
    await worker.run()
"""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Awaitable, Callable

from reelindex.config import settings
from reelindex.jobs.queue import Job, JobQueue, JobStatus
from reelindex.observability.logging import LogContext
from reelindex.observability.metrics import record_job

logger = logging.getLogger(__name__)

# Type alias for job handlers
JobHandler = Callable[[Job], Awaitable[dict[str, Any] | None]]


@dataclass
class WorkerConfig:
    """Worker configuration."""

    name: str = "indexer"
    concurrency: int = settings.job_concurrency
    poll_interval: float = settings.job_poll_interval
    claim_timeout: int = 1
    install_signal_handlers: bool = True


class JobWorker:
    """Background worker for processing queued jobs.

    At most ``config.concurrency`` jobs run at once; a slot is taken before
    a job is claimed, so a saturated worker leaves jobs on the shared
    pending list for its peers.
    """

    def __init__(
        self,
        queue: JobQueue | None = None,
        config: WorkerConfig | None = None,
    ) -> None:
        self.queue = queue or JobQueue()
        self.config = config or WorkerConfig()
        self._handlers: dict[str, JobHandler] = {}
        self._running = False
        self._slots = asyncio.Semaphore(max(1, self.config.concurrency))
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def handlers(self) -> dict[str, JobHandler]:
        return dict(self._handlers)

    def register_handler(self, task: str, handler: JobHandler) -> None:
        """Register a handler for a task type.

        Example:
            async def handle_index(job: Job) -> dict:
                await processor.index_entity(job.payload["entity_id"])
                return {"indexed": True}

            worker.register_handler("index_entity", handle_index)
        """
        self._handlers[task] = handler
        logger.info(f"Registered handler for task: {task}")

    async def start(self) -> None:
        await self.queue.initialize()
        self._running = True

        if self.config.install_signal_handlers:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self._signal_handler)

        logger.info(f"Worker started: {self.config.name} (concurrency={self.config.concurrency})")

    async def stop(self) -> None:
        """Stop the worker, waiting for in-flight jobs to finish."""
        if not self._running and not self._tasks:
            return
        logger.info(f"Stopping worker: {self.config.name}")
        self._running = False

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        logger.info(f"Worker stopped: {self.config.name}")

    def _signal_handler(self) -> None:
        logger.info("Received shutdown signal")
        self._running = False

    async def run(self) -> None:
        """Run the worker until shutdown."""
        await self.start()

        try:
            while self._running:
                await self._slots.acquire()
                claimed = False
                try:
                    async for job in self.queue.claim_jobs(
                        batch_size=1, timeout=self.config.claim_timeout
                    ):
                        claimed = True
                        task = asyncio.create_task(self._run_in_slot(job))
                        self._tasks.add(task)
                        task.add_done_callback(self._tasks.discard)
                except asyncio.CancelledError:
                    break
                except Exception as e:
                    logger.error(f"Error claiming jobs: {e}")
                    await asyncio.sleep(self.config.poll_interval)
                finally:
                    if not claimed:
                        self._slots.release()
        finally:
            await self.stop()

    async def _run_in_slot(self, job: Job) -> None:
        try:
            await self.process_job(job)
        finally:
            self._slots.release()

    async def process_job(self, job: Job) -> None:
        """Run a claimed job and report the outcome to the queue."""
        handler = self._handlers.get(job.task)

        if handler is None:
            logger.error(f"No handler for task: {job.task}")
            await self.queue.fail_job(job.id, f"Unknown task type: {job.task}", retry=False)
            record_job(job.task, "dead", 0.0)
            return

        with LogContext(job_id=job.id, entity_id=job.payload.get("entity_id")):
            start = time.perf_counter()
            try:
                logger.info(f"Processing job: {job.id} ({job.task})")
                result = await handler(job)
            except Exception as e:
                logger.error(f"Job failed: {job.id} ({job.task}) - {e}")
                status = await self.queue.fail_job(job.id, str(e), retry=True)
                outcome = "dead" if status == JobStatus.DEAD else "retried"
                record_job(job.task, outcome, time.perf_counter() - start)
                return

            await self.queue.complete_job(job.id, result)
            record_job(job.task, "completed", time.perf_counter() - start)

    async def run_once(self, batch_size: int | None = None) -> int:
        """Process one batch of jobs concurrently and return.

        Returns:
            Number of jobs processed
        """
        await self.queue.initialize()
        jobs = [
            job
            async for job in self.queue.claim_jobs(
                batch_size=batch_size or self.config.concurrency, timeout=1
            )
        ]

        async def bounded(job: Job) -> None:
            async with self._slots:
                await self.process_job(job)

        await asyncio.gather(*(bounded(job) for job in jobs))
        return len(jobs)

    async def __aenter__(self) -> "JobWorker":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()


def job_handler(task: str) -> Callable[[JobHandler], JobHandler]:
    """Decorator to mark a function as the handler of ``task``.

    Example:
        @job_handler("cleanup_soft_deletes")
        async def handle_cleanup(job: Job) -> dict:
            ...
    """

    def decorator(func: JobHandler) -> JobHandler:
        func.__job_task__ = task  # type: ignore[attr-defined]
        return func

    return decorator
