"""
Redis read-through cache for public catalog listings.

CACHING STRATEGY
================

What we cache:
  - Serialized room, term and package listings for the public site
  - Cache key pattern: "catalog:list:{kind}"

What we never cache:
  - Anything the booking ledger or payment handlers read. Prices and dates
    are computed from the database row at booking time, and availability is
    decided by the exclusion constraint, so a stale listing can at worst show
    a room that then fails with "already booked".

Invalidation:
  - TTL-based expiry (REDIS_CACHE_TTL)
  - `invalidate_catalog_cache()` deletes every "catalog:list:*" key; staff
    tooling that edits rooms calls it after committing.

Redis is optional: when disabled or unreachable every call degrades to a
cache miss and the caller reads from PostgreSQL.
"""

import json
from typing import Optional

import redis.asyncio as redis
from residency.core.config import get_settings
from residency.core.logging import get_logger
from residency.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None

CATALOG_KEY_PREFIX = "catalog:list:"


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


def _make_catalog_key(kind: str) -> str:
    return f"{CATALOG_KEY_PREFIX}{kind}"


async def get_cached_catalog(kind: str) -> Optional[list]:
    client = await get_redis()
    if not client:
        return None

    key = _make_catalog_key(kind)
    try:
        data = await client.get(key)
        if data:
            logger.debug("cache_hit", key=key)
            record_cache_operation("get", hit=True)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
        record_cache_operation("get", hit=False)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_catalog(kind: str, data: list) -> None:
    client = await get_redis()
    if not client:
        return

    key = _make_catalog_key(kind)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_catalog_cache() -> None:
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{CATALOG_KEY_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for the health endpoint."""
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
