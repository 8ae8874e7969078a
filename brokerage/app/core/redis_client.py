"""
Redis client for the geocode result cache.

The cache is an optimization only: timeouts are short so that an
unreachable Redis degrades pricing to a live lookup instead of stalling it.
"""

import logging

import redis.asyncio as redis
from brokerage.app.core.config import settings

logger = logging.getLogger(__name__)


def create_redis() -> redis.Redis:
    return redis.from_url(
        settings.redis_url,
        decode_responses=settings.redis_decode_responses,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
    )


# Process-wide client, replaced in tests
redis_client = create_redis()


async def ping_redis() -> bool:
    """
    Report whether the cache answers.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await redis_client.ping()
    except Exception as e:
        logger.warning("Redis ping failed: %s", e)
        return False


async def close_redis() -> None:
    """Release the connection pool on shutdown."""
    await redis_client.aclose()
