"""
Redis caching layer for feed and trending results.

Usage:
    from contribux.cache import cache, CacheKeys

    cache.set_json(CacheKeys.user_feed(1, 20), payload, ttl=300)
"""

from .cache_keys import CacheKeys
from .redis_client import RedisCache, cache

__all__ = ["RedisCache", "cache", "CacheKeys"]
