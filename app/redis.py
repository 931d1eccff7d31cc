"""
Redis client configuration using redis-py (asyncio).
Also provides the per-user lock used by the engagement scheduler.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import logging

from redis import asyncio as aioredis
from redis.asyncio.client import Redis

from app.config import settings

logger = logging.getLogger(__name__)

# Upper bound for one user's evaluate + dispatch
USER_LOCK_TIMEOUT_SECONDS = 120


class RedisClient:
    """Async Redis client wrapper."""

    _client: Optional[Redis] = None

    @classmethod
    def get_client(cls) -> Redis:
        """Get or create Redis client."""
        if cls._client is None:
            cls._client = aioredis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=5.0,
                health_check_interval=30,
            )
            logger.info("Redis client initialized")

        return cls._client

    @classmethod
    async def close(cls):
        """Close Redis client."""
        if cls._client:
            await cls._client.close()
            cls._client = None
            logger.info("Redis client closed")


async def get_redis() -> Redis:
    """Dependency for getting redis connection."""
    return RedisClient.get_client()


@asynccontextmanager
async def user_lock(redis: Optional[Redis], user_id: int) -> AsyncGenerator[bool, None]:
    """
    Non-blocking per-user lock for engagement state writes.

    Yields True when this worker owns the user for the duration of the block,
    False when another worker holds it. With no Redis configured the caller
    relies on the database row lock alone and always gets True.
    """
    if redis is None:
        yield True
        return

    lock = redis.lock(
        f"engagement:lock:user:{user_id}",
        timeout=USER_LOCK_TIMEOUT_SECONDS,
    )
    acquired = await lock.acquire(blocking=False)
    try:
        yield bool(acquired)
    finally:
        if acquired:
            await lock.release()
