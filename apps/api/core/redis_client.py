"""
Shared Redis connection.

Redis is optional: callers get None when it is unreachable and are
expected to degrade (rate limiting fails open).
"""
import logging
from typing import Optional
import redis
from redis.exceptions import ConnectionError, TimeoutError, RedisError
from core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> Optional[redis.Redis]:
    """Get a pooled Redis client, or None if Redis is unavailable."""
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    try:
        client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
            retry_on_timeout=True,
            health_check_interval=30,
        )
        client.ping()
    except (ConnectionError, TimeoutError, RedisError) as e:
        logger.warning(f"Redis unavailable: {e}")
        return None

    logger.info("Redis connection established")
    _redis_client = client
    return _redis_client


def reset_redis_client() -> None:
    """Drop the cached client so the next call reconnects."""
    global _redis_client
    _redis_client = None
