"""Shared Redis client."""

from typing import Optional

import redis.asyncio as redis

from indexsync.core.config import settings


class RedisClient:
    """Lazily created async Redis client shared by the process."""

    def __init__(self):
        """Initialize without connecting."""
        self._client: Optional[redis.Redis] = None

    @property
    def client(self) -> redis.Redis:
        """Return the Redis client, creating it on first use."""
        if self._client is None:
            self._client = redis.Redis(
                host=settings.REDIS_HOST,
                port=settings.REDIS_PORT,
                password=settings.REDIS_PASSWORD,
                db=settings.REDIS_DB,
                decode_responses=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


redis_client = RedisClient()
