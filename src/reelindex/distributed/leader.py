"""Lease-based leader election on Redis.

The recurring job scheduler runs under a continuous election so that
exactly one process fires due schedules at a time.

Leaders hold a key with a TTL and keep extending it; when a leader dies
the key expires and another process takes over.

Example:
    election = LeaderElection("job-scheduler")
    await election.start()

    while running:
        if election.is_leader:
            await fire_due_schedules()
        await asyncio.sleep(1)

    await election.stop()
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING, Awaitable, cast
from uuid import uuid4

from reelindex.cache.redis import get_redis

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

LOCK_PREFIX = "reelindex:leader:"
DEFAULT_LEASE_TTL = 30  # Seconds
RENEWAL_INTERVAL = 10

# Compare-and-act scripts so a lease is only touched by its owner
_RENEW_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("expire", KEYS[1], ARGV[2])
else
    return 0
end
"""
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


def _generate_instance_id() -> str:
    hostname = os.environ.get("HOSTNAME", os.environ.get("POD_NAME", "unknown"))
    return f"{hostname}-{uuid4().hex[:8]}"


class LeaderElection:
    """Redis lease held by at most one instance.

    Args:
        name: Name of the leadership role (e.g. "job-scheduler")
        instance_id: Identifier of this process (auto-generated if None)
        lease_ttl: Lease TTL in seconds
        renewal_interval: Seconds between acquire/renew attempts
        redis: Client to use instead of the shared one
    """

    def __init__(
        self,
        name: str,
        instance_id: str | None = None,
        lease_ttl: int = DEFAULT_LEASE_TTL,
        renewal_interval: int = RENEWAL_INTERVAL,
        redis: Redis | None = None,
    ):
        self.name = name
        self.instance_id = instance_id or _generate_instance_id()
        self.lease_ttl = lease_ttl
        self.renewal_interval = renewal_interval

        self._lock_key = f"{LOCK_PREFIX}{name}"
        self._is_leader = False
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._redis = redis

    @property
    def is_leader(self) -> bool:
        return self._is_leader

    @property
    def lock_key(self) -> str:
        return self._lock_key

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def start(self) -> None:
        """Start contending for leadership in the background."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._election_loop())
        logger.info(f"Started leader election for '{self.name}' as {self.instance_id}")

    async def stop(self) -> None:
        """Stop contending and hand the lease back if held."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._is_leader:
            await self.release()

        logger.info(f"Stopped leader election for '{self.name}'")

    async def _election_loop(self) -> None:
        while self._running:
            try:
                await self.tick()
                await asyncio.sleep(self.renewal_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in election loop for '{self.name}': {e}")
                self._is_leader = False
                await asyncio.sleep(self.renewal_interval)

    async def tick(self) -> bool:
        """Renew the lease if held, otherwise try to take it.

        Returns:
            Whether this instance is leader afterwards
        """
        if self._is_leader:
            if not await self.renew():
                self._is_leader = False
                logger.warning(f"Lost leadership for '{self.name}'")
        elif await self.acquire():
            self._is_leader = True
            logger.info(f"Elected as leader for '{self.name}'")
        return self._is_leader

    async def acquire(self) -> bool:
        redis = await self._get_redis()
        acquired = await redis.set(self._lock_key, self.instance_id, nx=True, ex=self.lease_ttl)
        return bool(acquired)

    async def renew(self) -> bool:
        redis = await self._get_redis()
        result = await cast(
            Awaitable[int],
            redis.eval(_RENEW_SCRIPT, 1, self._lock_key, self.instance_id, self.lease_ttl),
        )
        return bool(result)

    async def release(self) -> bool:
        redis = await self._get_redis()
        result = await cast(
            Awaitable[int],
            redis.eval(_RELEASE_SCRIPT, 1, self._lock_key, self.instance_id),
        )
        self._is_leader = False
        if result:
            logger.info(f"Released leadership for '{self.name}'")
        return bool(result)

