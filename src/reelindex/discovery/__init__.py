"""Discovery query surface."""

from reelindex.discovery.service import DiscoveryService

__all__ = ["DiscoveryService"]
