"""
Redis Cache Module

Optional read cache for product detail. Disabled unless REDIS_ENABLED is
set; when disabled or not initialized every lookup is a miss and every
write is skipped, so callers never depend on it. Entries are invalidated
after each write to the product they describe.
"""

import json
from typing import Any, Optional, Union
from datetime import timedelta

import structlog
from redis.asyncio import Redis, ConnectionPool

from stockledger.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()

_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis() -> Optional[Redis]:
    """Initialize the Redis connection pool if the cache is enabled"""
    global _redis_pool, _redis_client

    if not settings.redis.enabled:
        logger.info("Redis cache disabled")
        return None

    if _redis_client is not None:
        return _redis_client

    _redis_pool = ConnectionPool.from_url(
        settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
        decode_responses=settings.redis.decode_responses,
    )
    _redis_client = Redis(connection_pool=_redis_pool)

    try:
        await _redis_client.ping()
        logger.info("Redis connection established")
    except Exception as e:
        logger.error("Redis connection failed", error=str(e))
        await close_redis()
        raise

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None
        logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance"""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def is_cache_available() -> bool:
    return _redis_client is not None


async def cache_get(key: str) -> Optional[Any]:
    """Cached JSON value, or None on miss or when the cache is off"""
    if _redis_client is None:
        return None

    value = await _redis_client.get(key)
    if value is None:
        return None

    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


async def cache_set(
    key: str,
    value: Any,
    ttl: Optional[Union[int, timedelta]] = None,
) -> bool:
    """Store a JSON-serializable value. Returns False when nothing was cached."""
    if _redis_client is None:
        return False

    try:
        serialized = json.dumps(value, default=str)
    except (TypeError, ValueError) as e:
        logger.warning("Failed to serialize value for cache", key=key, error=str(e))
        return False

    if ttl:
        if isinstance(ttl, timedelta):
            ttl = int(ttl.total_seconds())
        await _redis_client.setex(key, ttl, serialized)
    else:
        await _redis_client.set(key, serialized)

    return True


async def cache_delete(key: str) -> bool:
    if _redis_client is None:
        return False
    return (await _redis_client.delete(key)) > 0


class CacheManager:
    """
    Namespaced cache keys.

    Example:
        await products_cache.set(str(product.id), detail)
        await products_cache.delete(str(product.id))
    """

    def __init__(self, namespace: str, default_ttl: int = 3600):
        self.namespace = namespace
        self.default_ttl = default_ttl

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        return await cache_get(self._key(key))

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return await cache_set(self._key(key), value, ttl or self.default_ttl)

    async def delete(self, key: str) -> bool:
        return await cache_delete(self._key(key))


products_cache = CacheManager("products", default_ttl=settings.redis.product_ttl)
