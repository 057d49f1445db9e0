"""Redis client wrapper for the shard registry cache."""

from collections.abc import AsyncGenerator

import redis.asyncio as redis
from redis.asyncio import Redis

from bunnyvault.config import settings
from bunnyvault.core.logging import get_logger

logger = get_logger(__name__)

# Global Redis connection pool
_redis_pool: redis.ConnectionPool | None = None
_redis_client: Redis | None = None


async def init_redis() -> Redis:
    """Initialize Redis connection pool.

    Call this during application startup.
    """
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    _redis_pool = redis.ConnectionPool.from_url(
        str(settings.redis_url),
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    _redis_client = Redis(connection_pool=_redis_pool)

    try:
        await _redis_client.ping()
        logger.info("redis_connected", url=str(settings.redis_url).split("@")[-1])
    except Exception as e:
        logger.error("redis_connection_failed", error=str(e))
        raise

    return _redis_client


async def close_redis() -> None:
    """Close Redis connections.

    Call this during application shutdown.
    """
    global _redis_pool, _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("redis_disconnected")


async def check_redis_connection() -> bool:
    """Check Redis connectivity for health checks."""
    if _redis_client is None:
        return False

    try:
        await _redis_client.ping()
        return True
    except Exception:
        return False


class CacheClient:
    """Key-value cache with TTL on top of Redis.

    Values are plain strings; callers serialize.

    Usage:
        cache = CacheClient(redis_client)

        data = await cache.get("shards:active")
        if data is None:
            data = await load_shards()
            await cache.set("shards:active", data, ttl=600)
    """

    PREFIX = "cache:"

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    async def get(self, key: str) -> str | None:
        """Get value from cache."""
        return await self.redis.get(f"{self.PREFIX}{key}")

    async def set(
        self,
        key: str,
        value: str,
        ttl: int = 300,
    ) -> None:
        """Set value in cache with TTL."""
        await self.redis.setex(f"{self.PREFIX}{key}", ttl, value)

    async def delete(self, key: str) -> None:
        """Delete value from cache."""
        await self.redis.delete(f"{self.PREFIX}{key}")


async def get_cache() -> AsyncGenerator[CacheClient | None, None]:
    """FastAPI dependency for the cache.

    Yields None when Redis is not initialized; callers then work uncached.
    """
    if _redis_client is None:
        yield None
    else:
        yield CacheClient(_redis_client)
