"""Redis read-through cache.

Reads and writes fail open: a Redis outage turns every lookup into a miss
and every populate into a no-op, so queries keep flowing to the search
engine. Invalidations raise ``CacheUnavailableError`` instead, because a
skipped invalidation would leave stale pages behind; the change listener
relies on that to withhold the broker acknowledgment.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import orjson
import redis.asyncio as redis
from redis.exceptions import RedisError

from reelindex.config import settings
from reelindex.errors import CacheUnavailableError
from reelindex.observability.metrics import record_cache_hit, record_cache_miss

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Module-level client
_redis_client: Redis | None = None

DEFAULT_TTL = 300
DELETE_BATCH = 500


async def get_redis() -> Redis:
    """Get or create the shared Redis client.

    Uses connection pooling for efficient connection management.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            settings.redis_url,
            decode_responses=False,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_socket_timeout,
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class RedisCache:
    """JSON value cache with point and prefix invalidation."""

    def __init__(
        self,
        client: Redis,
        ttl: int = DEFAULT_TTL,
        namespace: str = settings.cache_namespace,
    ):
        self.client = client
        self.ttl = ttl
        self.namespace = namespace

    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None on miss or backend failure."""
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

        if raw is None:
            record_cache_miss(self.namespace)
            return None

        record_cache_hit(self.namespace)
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a JSON-serializable value; failures are logged and ignored."""
        try:
            await self.client.set(key, orjson.dumps(value), ex=ttl or self.ttl)
        except RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        """Invalidate a single key."""
        try:
            await self.client.delete(key)
        except RedisError as e:
            raise CacheUnavailableError(f"Failed to invalidate {key}: {e}") from e

    async def delete_by_prefix(self, prefix: str) -> int:
        """Invalidate every key starting with ``prefix``.

        Walks the keyspace with SCAN and unlinks in batches so large result
        sets never block the server.

        Returns:
            Number of keys removed
        """
        removed = 0
        batch: list[bytes | str] = []
        try:
            async for key in self.client.scan_iter(match=f"{prefix}*", count=DELETE_BATCH):
                batch.append(key)
                if len(batch) >= DELETE_BATCH:
                    removed += await self.client.unlink(*batch)
                    batch.clear()
            if batch:
                removed += await self.client.unlink(*batch)
        except RedisError as e:
            raise CacheUnavailableError(f"Failed to invalidate prefix {prefix}: {e}") from e

        logger.debug(f"Invalidated {removed} keys under {prefix}")
        return removed

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            await self.client.ping()
            return True
        except RedisError:
            return False
