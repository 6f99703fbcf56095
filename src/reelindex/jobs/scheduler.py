"""Cron scheduler for recurring jobs.

Recurring jobs are registered by name. Registration is idempotent: the
definition is stored in a Redis hash keyed by name, so re-registering at
every process start replaces the entry instead of adding a second one.

Each due slot is fired at most once across all scheduler processes: the
scheduler runs under leader election, and the slot itself is claimed with
SET NX before the job is enqueued.

Example:
    scheduler = JobScheduler(queue)
    await scheduler.register("cleanup_soft_deletes", cron="0 2 * * *")
    await scheduler.run()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import orjson

from reelindex.cache.redis import get_redis
from reelindex.distributed.leader import LeaderElection
from reelindex.jobs.queue import JobQueue

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

SCHEDULES_KEY = "reelindex:schedules"
FIRED_PREFIX = "reelindex:schedules:fired:"
FIRED_TTL = 86400 * 2


@dataclass
class ScheduledJob:
    """A recurring job definition."""

    name: str
    task: str
    cron: str
    payload: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    last_run: datetime | None = None
    next_run: datetime | None = None

    def definition(self) -> dict[str, Any]:
        """The persisted part of the schedule (run times are process-local)."""
        return {
            "task": self.task,
            "cron": self.cron,
            "payload": self.payload,
            "enabled": self.enabled,
        }


class CronExpression:
    """Parse and evaluate 5-field cron expressions.

    Fields: minute (0-59), hour (0-23), day of month (1-31), month (1-12),
    day of week (0-6, 0=Sunday).

    Special characters:
    - * : any value
    - */n : every n values
    - n-m : range from n to m
    - n,m : specific values n and m
    """

    def __init__(self, expression: str) -> None:
        self.expression = expression
        self._parse(expression)

    def _parse(self, expression: str) -> None:
        parts = expression.strip().split()
        if len(parts) != 5:
            raise ValueError(f"Invalid cron expression (expected 5 parts): {expression}")

        self.minute = self._parse_field(parts[0], 0, 59)
        self.hour = self._parse_field(parts[1], 0, 23)
        self.day_of_month = self._parse_field(parts[2], 1, 31)
        self.month = self._parse_field(parts[3], 1, 12)
        self.day_of_week = self._parse_field(parts[4], 0, 6)
        self._python_weekdays = {6 if day == 0 else day - 1 for day in self.day_of_week}

    def _parse_field(self, field: str, min_val: int, max_val: int) -> set[int]:
        values: set[int] = set()

        for part in field.split(","):
            if part == "*":
                values.update(range(min_val, max_val + 1))
            elif part.startswith("*/"):
                values.update(range(min_val, max_val + 1, int(part[2:])))
            elif "-" in part:
                start, end = map(int, part.split("-"))
                values.update(range(start, end + 1))
            else:
                values.add(int(part))

        if not values or min(values) < min_val or max(values) > max_val:
            raise ValueError(f"Cron field out of range [{min_val}-{max_val}]: {field}")
        return values

    def matches(self, dt: datetime) -> bool:
        # Python weekday(): 0=Mon; cron: 0=Sun
        return (
            dt.minute in self.minute
            and dt.hour in self.hour
            and dt.day in self.day_of_month
            and dt.month in self.month
            and dt.weekday() in self._python_weekdays
        )

    def next_run(self, after: datetime | None = None) -> datetime:
        """First matching minute strictly after ``after``."""
        if after is None:
            after = datetime.now(UTC)

        current = after.replace(second=0, microsecond=0)
        for _ in range(366 * 24 * 60):
            current += timedelta(minutes=1)
            if self.matches(current):
                return current

        raise ValueError(f"No matching time found for: {self.expression}")


class JobScheduler:
    """Fires registered recurring jobs into the job queue."""

    def __init__(
        self,
        queue: JobQueue | None = None,
        check_interval: float = 30.0,
        use_leader_election: bool = True,
        redis: Redis | None = None,
    ) -> None:
        self.queue = queue or JobQueue()
        self.check_interval = check_interval
        self.use_leader_election = use_leader_election
        self._jobs: dict[str, ScheduledJob] = {}
        self._crons: dict[str, CronExpression] = {}
        self._running = False
        self._leader: LeaderElection | None = None
        self._redis = redis

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    def _track(self, job: ScheduledJob, now: datetime | None = None) -> ScheduledJob:
        cron = CronExpression(job.cron)
        previous = self._jobs.get(job.name)
        if previous is not None and previous.cron == job.cron:
            job.last_run = previous.last_run
            job.next_run = previous.next_run
        else:
            job.next_run = cron.next_run(now)
        self._jobs[job.name] = job
        self._crons[job.name] = cron
        return job

    async def register(
        self,
        name: str,
        task: str | None = None,
        cron: str = "* * * * *",
        payload: dict[str, Any] | None = None,
        enabled: bool = True,
    ) -> ScheduledJob:
        """Register (or replace) the recurring job called ``name``.

        Args:
            name: Unique schedule name (also the task if ``task`` is omitted)
            task: Task to enqueue on each fire
            cron: 5-field cron expression
            payload: Payload for each enqueued job
            enabled: Whether the schedule fires
        """
        job = ScheduledJob(
            name=name, task=task or name, cron=cron, payload=payload or {}, enabled=enabled
        )
        CronExpression(cron)  # validate before persisting

        redis = await self._get_redis()
        await redis.hset(SCHEDULES_KEY, name, orjson.dumps(job.definition()))

        self._track(job)
        logger.info(f"Recurring job registered: {name} ({cron}), next run: {job.next_run}")
        return job

    async def load(self) -> list[ScheduledJob]:
        """Load every persisted schedule into this scheduler."""
        redis = await self._get_redis()
        stored = await redis.hgetall(SCHEDULES_KEY)

        for raw_name, raw_definition in stored.items():
            name = raw_name.decode() if isinstance(raw_name, bytes) else raw_name
            definition = orjson.loads(raw_definition)
            try:
                self._track(ScheduledJob(name=name, **definition))
            except ValueError as e:
                logger.error(f"Ignoring invalid schedule {name}: {e}")

        return self.list_jobs()

    async def unregister(self, name: str) -> bool:
        redis = await self._get_redis()
        removed = await redis.hdel(SCHEDULES_KEY, name)
        self._jobs.pop(name, None)
        self._crons.pop(name, None)
        if removed:
            logger.info(f"Recurring job removed: {name}")
        return bool(removed)

    def list_jobs(self) -> list[ScheduledJob]:
        return list(self._jobs.values())

    async def start(self) -> None:
        await self.queue.initialize()
        await self.load()
        self._running = True

        if self.use_leader_election:
            self._leader = LeaderElection(name="job-scheduler", redis=self._redis)
            await self._leader.start()
            logger.info("Scheduler started with leader election")
        else:
            logger.info("Scheduler started (no leader election)")

    async def stop(self) -> None:
        self._running = False
        if self._leader:
            await self._leader.stop()
            self._leader = None
        logger.info("Scheduler stopped")

    async def run(self) -> None:
        """Run the scheduler until stopped."""
        await self.start()

        try:
            while self._running:
                if self._leader is None or self._leader.is_leader:
                    await self.check_schedules()
                await asyncio.sleep(self.check_interval)
        finally:
            await self.stop()

    async def check_schedules(self, now: datetime | None = None) -> list[str]:
        """Enqueue every enabled schedule whose next run has passed.

        Returns:
            Ids of the jobs enqueued
        """
        now = now or datetime.now(UTC)
        submitted: list[str] = []

        for name, job in self._jobs.items():
            if not job.enabled or job.next_run is None or now < job.next_run:
                continue

            slot = job.next_run
            try:
                job_id = await self._fire(job, slot)
            except Exception as e:
                logger.error(f"Failed to submit scheduled job {name}: {e}")
                continue

            job.last_run = now
            job.next_run = self._crons[name].next_run(now)
            if job_id is not None:
                submitted.append(job_id)

        return submitted

    async def _fire(self, job: ScheduledJob, slot: datetime) -> str | None:
        redis = await self._get_redis()
        slot_key = f"{FIRED_PREFIX}{job.name}:{slot.strftime('%Y%m%d%H%M')}"
        if not await redis.set(slot_key, "1", nx=True, ex=FIRED_TTL):
            logger.debug(f"Slot {slot_key} already fired elsewhere")
            return None

        job_id = await self.queue.enqueue(job.task, dict(job.payload), dedupe_key=job.name)
        logger.info(f"Scheduled job submitted: {job.name} -> {job_id}")
        return job_id

    async def run_now(self, name: str) -> str | None:
        """Trigger a registered job immediately, outside its schedule.

        Uses the schedule name as dedupe key, so a manual trigger collapses
        onto a pending scheduled run.

        Returns:
            Job id if submitted, None if no such schedule
        """
        job = self._jobs.get(name)
        if job is None:
            return None

        job_id = await self.queue.enqueue(job.task, dict(job.payload), dedupe_key=job.name)
        logger.info(f"Manually triggered scheduled job: {name} -> {job_id}")
        return job_id
