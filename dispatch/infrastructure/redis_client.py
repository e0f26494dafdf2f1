"""Redis connection pool used by the cross-process broadcast relay."""

from typing import Optional

import redis.asyncio as aioredis

from dispatch.config import settings

_pool: Optional[aioredis.ConnectionPool] = None


def _connection_pool() -> aioredis.ConnectionPool:
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(
            settings.redis_url, decode_responses=True, health_check_interval=30
        )
    return _pool


async def get_redis() -> aioredis.Redis:
    return aioredis.Redis(connection_pool=_connection_pool())


async def close_redis() -> None:
    """Drop pooled connections; the next ``get_redis`` builds a fresh pool."""
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None
