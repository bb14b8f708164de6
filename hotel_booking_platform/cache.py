"""
Redis caching layer: rate-limit windows, the room-type catalogue and the
gateway access token.

Every operation fails open. When Redis is unreachable the application keeps
serving requests and simply skips caching.
"""

import json
import logging
import time
from typing import Any, Optional, Tuple

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


class CacheKeyBuilder:
    """Helper class for building consistent cache keys."""

    @staticmethod
    def room_types() -> str:
        """Build cache key for the room-type catalogue."""
        return "rooms:types"

    @staticmethod
    def mpesa_token(shortcode: str) -> str:
        """Build cache key for the Daraja OAuth access token."""
        return f"mpesa:token:{shortcode}"

    @staticmethod
    def rate_limit(scope: str, identity: str) -> str:
        """Build cache key for a rate-limit window."""
        return f"rate_limit:{scope}:{identity}"


class RedisCache:
    """Redis cache manager with connection handling and operations."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.client: Optional[Redis] = None
        self.pool: Optional[redis.ConnectionPool] = None

    @property
    def available(self) -> bool:
        return self.client is not None

    async def initialize(self) -> None:
        """Initialize Redis connection pool and client."""
        if not self.settings.enable_cache:
            logger.info("Redis cache disabled by configuration")
            return

        try:
            self.pool = redis.ConnectionPool.from_url(
                self.settings.redis_url,
                max_connections=self.settings.redis_max_connections,
                retry_on_timeout=True,
                socket_keepalive=True,
                health_check_interval=30
            )
            client = Redis(connection_pool=self.pool)
            await client.ping()
            self.client = client
            logger.info("Redis cache initialized successfully")
        except (RedisError, OSError) as e:
            logger.warning("Redis unavailable, continuing without cache: %s", e)
            if self.pool:
                await self.pool.disconnect()
            self.pool = None
            self.client = None

    async def close(self) -> None:
        """Close Redis connections."""
        if self.client:
            await self.client.aclose()
        if self.pool:
            await self.pool.disconnect()
        self.client = None
        self.pool = None
        logger.info("Redis cache connections closed")

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        if not self.client:
            return None

        try:
            value = await self.client.get(key)
            if value:
                return json.loads(value)
            return None
        except (RedisError, ValueError) as e:
            logger.warning("Failed to get cache key %s: %s", key, e)
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: JSON-serialisable value
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        if not self.client:
            return False

        try:
            serialized_value = json.dumps(value, default=str)
            if ttl:
                await self.client.setex(key, ttl, serialized_value)
            else:
                await self.client.set(key, serialized_value)
            return True
        except (RedisError, TypeError) as e:
            logger.warning("Failed to set cache key %s: %s", key, e)
            return False

    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        if not self.client:
            return False

        try:
            await self.client.delete(key)
            return True
        except RedisError as e:
            logger.warning("Failed to delete cache key %s: %s", key, e)
            return False

    async def hit_window(self, key: str, window: int) -> Tuple[int, Optional[float]]:
        """
        Record a hit in a sliding window and report the prior hit count.

        Args:
            key: Sorted-set key holding hit timestamps
            window: Window length in seconds

        Returns:
            Tuple of (hits already in the window, oldest hit timestamp).
            ``(0, None)`` when Redis is unavailable.
        """
        if not self.client:
            return 0, None

        now = time.time()
        try:
            pipe = self.client.pipeline()
            pipe.zremrangebyscore(key, 0, now - window)
            pipe.zcard(key)
            pipe.zadd(key, {f"{now:.6f}": now})
            pipe.expire(key, window * 2)
            pipe.zrange(key, 0, 0, withscores=True)
            results = await pipe.execute()
        except RedisError as e:
            logger.warning("Failed to update rate window %s: %s", key, e)
            return 0, None

        current_count = results[1]
        oldest = results[4]
        oldest_time = float(oldest[0][1]) if oldest else None
        return current_count, oldest_time
