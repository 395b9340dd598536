"""
Redis caching for the resource catalogue.

What we cache:
  - Room and venue listings used by availability scans, keyed by kind and
    the include-inactive flag: "resources:{kind}:inactive={flag}"

Why:
  - Every scan enumerates the whole catalogue before checking bookings
  - Rooms and venues are administered rarely and are read-only here

What we never cache:
  - Bookings. Availability must always be computed against the current
    persisted booking set.

Invalidation:
  - TTL expiry (REDIS_CACHE_TTL)
  - invalidate_resource_cache() for the admin tooling that edits resources

Redis failures degrade to a cache miss; the database stays authoritative.
"""

import json
from typing import Optional

import redis.asyncio as redis
from room_booking.core.config import get_settings
from room_booking.core.logging import get_logger
from room_booking.core.metrics import record_cache_operation, redis_connection_errors

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            redis_connection_errors.inc()
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None


def _make_resource_key(kind: str, include_inactive: bool) -> str:
    return f"resources:{kind}:inactive={include_inactive}"


async def get_cached_resources(kind: str, include_inactive: bool) -> Optional[list[dict]]:
    client = await get_redis()
    if not client:
        return None

    key = _make_resource_key(kind, include_inactive)
    try:
        data = await client.get(key)
        record_cache_operation("get", hit=data is not None)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_resources(kind: str, include_inactive: bool, data: list[dict]) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_resource_key(kind, include_inactive)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_resource_cache() -> None:
    """Drop every cached catalogue listing."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match="resources:*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
