"""Coordination primitives shared by multi-instance deployments."""

from reelindex.distributed.leader import LeaderElection

__all__ = ["LeaderElection"]
