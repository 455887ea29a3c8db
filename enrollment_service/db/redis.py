"""Redis client for the content-tree cache.

REDIS_URL set   → one shared ``redis.asyncio`` pool (``redis_pool``).
REDIS_URL unset → ``redis_pool`` is None and services/cache.py keeps
                  trees in process memory.

Only cached content trees are stored here.  Every entry can be rebuilt
from PostgreSQL, so an unreachable Redis at startup is logged and the
service starts anyway.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from enrollment_service.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,  # cached trees are JSON text
        max_connections=20,
        socket_timeout=SETTINGS.storage_timeout_seconds,
        socket_connect_timeout=SETTINGS.storage_timeout_seconds,
        health_check_interval=30,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    if redis_pool is None:
        logger.info("No REDIS_URL configured; content cache is in-memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected for content cache")
    except (RedisError, OSError) as e:
        logger.warning("Redis unreachable on startup, serving uncached: %s", e)

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis connection pool closed")
