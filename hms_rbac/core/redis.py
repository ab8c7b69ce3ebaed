"""
Redis connection management for the permission cache.
"""

import redis.asyncio as redis
from redis.asyncio import ConnectionPool
import logging

from hms_rbac.core.config import settings

logger = logging.getLogger(__name__)

# Redis connection pool
redis_pool = None
redis_client = None


async def init_redis():
    """Initialize Redis connection pool and client."""
    global redis_pool, redis_client

    try:
        redis_pool = ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            max_connections=20,
            retry_on_timeout=True,
            socket_keepalive=True,
        )

        redis_client = redis.Redis(connection_pool=redis_pool)

        # Test connection
        await redis_client.ping()
        logger.info("Redis connection established successfully")

    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        redis_pool = None
        redis_client = None
        raise


async def get_redis():
    """Get Redis client for dependency injection."""
    if redis_client is None:
        await init_redis()
    return redis_client


async def close_redis():
    """Close Redis connections."""
    global redis_pool, redis_client

    if redis_client:
        await redis_client.aclose()
        redis_client = None

    if redis_pool:
        await redis_pool.disconnect()
        redis_pool = None

    logger.info("Redis connections closed")


async def clear_cache_pattern(pattern: str) -> int:
    """Delete all keys matching a pattern and return how many were removed."""
    client = await get_redis()
    keys = {key async for key in client.scan_iter(match=pattern, count=500)}
    if keys:
        await client.delete(*keys)
    return len(keys)
