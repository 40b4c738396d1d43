"""
Redis caching service for booking availability.

CACHING STRATEGY
================

What we cache:
  - Day availability views for a VR session (capacity, booked count, slots)
  - Cache key pattern: "bookings:availability:session={id}&day={YYYY-MM-DD}"

Why:
  - Availability is polled by the booking calendar far more often than
    bookings are written

Invalidation strategy:
  - Every booking write (create, update, cancel, delete, payment cascade)
    deletes all availability keys by prefix scan
  - TTL-based expiry as safety net

The booking writer never reads from this cache; capacity decisions are
always made against the database.
"""

import json
from typing import Optional

import redis.asyncio as redis

from arena.core.config import get_settings
from arena.core.logging import get_logger
from arena.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

AVAILABILITY_PREFIX = "bookings:availability:"

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
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_availability_key(session_id: int, day: str) -> str:
    return f"{AVAILABILITY_PREFIX}session={session_id}&day={day}"


async def get_cached_availability(session_id: int, day: str) -> Optional[dict]:
    client = await get_redis()
    if not client:
        return None

    key = _make_availability_key(session_id, day)
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


async def set_cached_availability(session_id: int, day: str, data: dict) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_availability_key(session_id, day)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_availability_cache() -> None:
    """Delete every cached availability view."""
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{AVAILABILITY_PREFIX}*", count=100):
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
