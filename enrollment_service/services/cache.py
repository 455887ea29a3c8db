"""Read-through cache for content trees.

  Client → Cache → miss → store → populate cache → return
  Client → Cache → hit  → return (skip the store entirely)

Two invalidation strategies cover each other:

  1. TTL: every entry expires after CONTENT_CACHE_TTL_SECONDS, so a
     forgotten invalidation can only serve stale data for that long.
  2. Explicit: ContentService deletes the entry whenever it changes a
     course's lessons, so the next progress computation sees the new
     lesson count immediately.

The cache only ever holds re-computable data.  A Redis failure is logged
and treated as a miss; it never fails the request.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from redis.exceptions import RedisError

from enrollment_service.core.metrics import CACHE_OPERATIONS
from enrollment_service.db.redis import redis_pool

logger = logging.getLogger(__name__)


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL (time to live)."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...


class InMemoryCacheService:
    """In-memory cache for dev and tests — no TTL enforcement.

    The autouse fixture in conftest.py clears the store between tests.
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        value = self._store.get(key)
        CACHE_OPERATIONS.labels(operation="hit" if value is not None else "miss").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        CACHE_OPERATIONS.labels(operation="invalidate").inc()
        self._store.pop(key, None)


class RedisCacheService:
    """Redis-backed cache — shared across all API instances."""

    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        try:
            value = await self._redis.get(f"{self._PREFIX}{key}")
        except RedisError as e:
            logger.warning("Cache read failed key=%s: %s", key, e)
            CACHE_OPERATIONS.labels(operation="error").inc()
            return None
        CACHE_OPERATIONS.labels(operation="hit" if value is not None else "miss").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)
        except RedisError as e:
            logger.warning("Cache write failed key=%s: %s", key, e)
            CACHE_OPERATIONS.labels(operation="error").inc()

    async def delete(self, key: str) -> None:
        # A failed invalidation is bounded by the TTL.
        try:
            await self._redis.delete(f"{self._PREFIX}{key}")
            CACHE_OPERATIONS.labels(operation="invalidate").inc()
        except RedisError as e:
            logger.warning("Cache invalidation failed key=%s: %s", key, e)
            CACHE_OPERATIONS.labels(operation="error").inc()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
