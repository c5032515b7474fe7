"""Redis connection shared by the rate limiter and the health check.

Redis is optional: if init_redis() fails at startup the app still
serves requests, it just stops counting them.
"""

from typing import Optional

import redis.asyncio as aioredis

from comityspace.config import settings

# Initialized in the app lifespan
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    global _redis
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await client.ping()
    _redis = client
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> Optional[aioredis.Redis]:
    """The live connection, or None when Redis was never reachable."""
    return _redis
