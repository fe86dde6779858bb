"""
Redis client with connection pooling.

Provides a singleton Redis client with:
- Connection pooling
- JSON serialization for feed and trending results
- Graceful degradation: every call is a no-op when Redis is unavailable
  or caching is disabled, so discovery never fails because of the cache
"""

import json
from typing import Any, Optional

import redis
from redis.exceptions import RedisError

from contribux.config import get_settings
from contribux.logging import get_logger

logger = get_logger("cache")


class RedisCache:
    """
    Redis cache client.

    Usage:
        from contribux.cache import cache

        cache.set_json("feed:user:1:20", results, ttl=300)
        data = cache.get_json("feed:user:1:20")
    """

    _instance: Optional["RedisCache"] = None
    _pool: Optional[redis.ConnectionPool] = None
    _initialized: bool = False
    _available: bool = False

    def __new__(cls) -> "RedisCache":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def initialize(self, force: bool = False) -> bool:
        """
        Create the connection pool and ping the server.

        Args:
            force: Re-initialize even if already initialized

        Returns:
            True if Redis is reachable, False otherwise
        """
        if self._initialized and not force:
            return self._available

        settings = get_settings()
        if not settings.cache_enabled:
            logger.info("cache_disabled")
            self._available = False
            self._initialized = True
            return False

        try:
            self._pool = redis.ConnectionPool(
                host=settings.redis_host,
                port=settings.redis_port,
                db=settings.redis_db,
                password=settings.redis_password,
                max_connections=50,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            redis.Redis(connection_pool=self._pool).ping()
            self._available = True
            logger.info("redis_connected", host=settings.redis_host, port=settings.redis_port)
        except RedisError as e:
            logger.warning("redis_connection_failed", error=str(e))
            self._available = False
        self._initialized = True
        return self._available

    @property
    def client(self) -> Optional[redis.Redis]:
        if not self.is_available or self._pool is None:
            return None
        return redis.Redis(connection_pool=self._pool)

    @property
    def is_available(self) -> bool:
        if not self._initialized:
            self.initialize()
        return self._available

    # =========================================================================
    # JSON Operations
    # =========================================================================

    def get_json(self, key: str) -> Any | None:
        """Cached JSON value, or None on miss or when unavailable."""
        client = self.client
        if client is None:
            return None
        try:
            data = client.get(key)
            if data is None:
                return None
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            return json.loads(data)
        except (json.JSONDecodeError, RedisError) as e:
            logger.debug("cache_get_error", key=key, error=str(e))
            return None

    def set_json(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Store a JSON-serializable value with a TTL in seconds."""
        client = self.client
        if client is None or ttl <= 0:
            return False
        try:
            client.setex(key, ttl, json.dumps(value).encode("utf-8"))
            return True
        except (TypeError, RedisError) as e:
            logger.debug("cache_set_error", key=key, error=str(e))
            return False

    # =========================================================================
    # Key Operations
    # =========================================================================

    def incr(self, key: str) -> Optional[int]:
        """Atomically increment a counter; None when unavailable."""
        client = self.client
        if client is None:
            return None
        try:
            return int(client.incr(key))
        except RedisError as e:
            logger.debug("cache_incr_error", key=key, error=str(e))
            return None

    def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Args:
            pattern: Redis glob pattern (e.g., "feed:user:123:*")

        Returns:
            Number of keys deleted
        """
        client = self.client
        if client is None:
            return 0
        try:
            keys = list(client.scan_iter(match=pattern, count=500))
            if not keys:
                return 0
            return int(client.delete(*keys))
        except RedisError as e:
            logger.debug("cache_delete_pattern_error", pattern=pattern, error=str(e))
            return 0

    def health_check(self) -> dict[str, Any]:
        status: dict[str, Any] = {"available": self._available, "initialized": self._initialized}
        client = self.client
        if client is None:
            status["status"] = "unavailable"
            return status
        try:
            client.ping()
            status["status"] = "healthy"
        except RedisError:
            status["status"] = "degraded"
        return status

    def reset(self) -> None:
        """Drop the pool so the next call re-initializes."""
        if self._pool is not None:
            self._pool.disconnect()
        self._pool = None
        self._initialized = False
        self._available = False


# Global singleton instance
cache = RedisCache()
