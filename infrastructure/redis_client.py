"""Async Redis connection for the health check and shared limiter state.

``connect_redis`` returns None when Redis is not configured or unreachable;
the service then runs degraded with per-process rate-limit counters.
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config import RedisSettings
from shared.logging import get_logger

log = get_logger(__name__)


def mask_uri(uri: str) -> str:
    """Drop credentials from a connection URI for logging."""
    scheme, sep, rest = uri.partition("://")
    return f"{scheme}{sep}{rest.split('@')[-1]}" if sep else uri.split("@")[-1]


async def connect_redis(settings: RedisSettings) -> Optional[aioredis.Redis]:
    if not settings.redis_uri:
        log.info("redis_not_configured")
        return None
    client: aioredis.Redis = aioredis.from_url(
        settings.redis_uri, encoding="utf-8", decode_responses=True
    )
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        log.warning(
            "redis_connection_failed",
            uri=mask_uri(settings.redis_uri),
            error=str(e),
            error_type=type(e).__name__,
        )
        await client.aclose()
        return None
    log.info("redis_connected", uri=mask_uri(settings.redis_uri))
    return client
