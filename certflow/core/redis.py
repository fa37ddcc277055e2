# ruff: noqa: PLW0603
"""Redis connection management.

Redis is only used as the pub/sub transport for notification events; the
service keeps running when it is unreachable.
"""

import redis.asyncio as redis

from certflow.config import get_settings
from certflow.core.logging import get_logger


logger = get_logger(__name__)

_redis_client: redis.Redis | None = None


async def init_redis() -> redis.Redis:
    """Initialize Redis connection pool.

    Raises:
        redis.ConnectionError: If the server does not answer PING
    """
    global _redis_client

    settings = get_settings()

    _redis_client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        retry_on_timeout=settings.redis_retry_on_timeout,
        health_check_interval=settings.redis_health_check_interval,
        decode_responses=True,
    )

    try:
        await _redis_client.ping()
        logger.info("redis_connected", url=settings.redis_url)
    except redis.ConnectionError as e:
        logger.warning("redis_connection_failed", error=str(e))
        _redis_client = None
        raise

    return _redis_client


async def shutdown_redis() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client:
        await _redis_client.aclose()
        logger.info("redis_disconnected")
        _redis_client = None


def get_redis() -> redis.Redis | None:
    """Get Redis client instance."""
    return _redis_client


# Pub/Sub channel names
def user_channel(user_id: str, prefix: str = "notifications") -> str:
    """Per-recipient channel, e.g. ``notifications:user:<id>``."""
    return f"{prefix}:user:{user_id}"


def events_channel(prefix: str = "notifications") -> str:
    """Channel carrying every workflow event, for downstream consumers."""
    return f"{prefix}:events"
