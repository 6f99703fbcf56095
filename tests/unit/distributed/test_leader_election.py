"""Tests for Redis lease-based leader election."""

from unittest.mock import AsyncMock

import pytest

from reelindex.distributed.leader import LOCK_PREFIX, LeaderElection


@pytest.fixture
def redis() -> AsyncMock:
    return AsyncMock()


class TestLeaderElection:
    def test_lock_key(self, redis: AsyncMock) -> None:
        election = LeaderElection("job-scheduler", instance_id="a", redis=redis)

        assert election.lock_key == f"{LOCK_PREFIX}job-scheduler"
        assert not election.is_leader

    async def test_tick_acquires_free_lease(self, redis: AsyncMock) -> None:
        """An uncontended lease is taken with SET NX and a TTL."""
        redis.set.return_value = True
        election = LeaderElection("job-scheduler", instance_id="a", lease_ttl=15, redis=redis)

        assert await election.tick() is True
        redis.set.assert_awaited_once_with(election.lock_key, "a", nx=True, ex=15)

    async def test_tick_when_lease_held_elsewhere(self, redis: AsyncMock) -> None:
        redis.set.return_value = None
        election = LeaderElection("job-scheduler", instance_id="b", redis=redis)

        assert await election.tick() is False

    async def test_leader_loses_lease_on_failed_renewal(self, redis: AsyncMock) -> None:
        """A renewal rejected by the owner check drops leadership."""
        redis.set.return_value = True
        redis.eval.return_value = 0
        election = LeaderElection("job-scheduler", instance_id="a", redis=redis)
        await election.tick()

        assert await election.tick() is False
        assert not election.is_leader

    async def test_stop_hands_back_lease(self, redis: AsyncMock) -> None:
        """Stopping a leader releases the lease with an owner check."""
        redis.set.return_value = True
        redis.eval.return_value = 1
        election = LeaderElection("job-scheduler", instance_id="a", redis=redis)
        await election.tick()

        await election.stop()

        assert not election.is_leader
        args = redis.eval.await_args.args
        assert args[2:] == (election.lock_key, "a")

    async def test_stop_without_lease_skips_release(self, redis: AsyncMock) -> None:
        election = LeaderElection("job-scheduler", instance_id="a", redis=redis)

        await election.stop()

        redis.eval.assert_not_awaited()
