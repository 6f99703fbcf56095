"""Read cache for discovery queries."""

from reelindex.cache.keys import CacheKeys, canonical_query
from reelindex.cache.redis import RedisCache, close_redis, get_redis

__all__ = ["CacheKeys", "RedisCache", "canonical_query", "close_redis", "get_redis"]
