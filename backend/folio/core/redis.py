"""
Redis connection management.

One async client serves the shared metrics cache and the metrics stream.
"""

from typing import Optional
from redis.asyncio import Redis as AsyncRedis
from folio.core.config import settings

async_redis_client: Optional[AsyncRedis] = None


def get_async_redis() -> AsyncRedis:
    """Get async Redis client."""
    global async_redis_client
    if async_redis_client is None:
        async_redis_client = AsyncRedis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )
    return async_redis_client


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global async_redis_client

    if async_redis_client is not None:
        await async_redis_client.aclose()
        async_redis_client = None


class StreamNames:
    """Redis Stream names."""

    METRICS = "metrics"
