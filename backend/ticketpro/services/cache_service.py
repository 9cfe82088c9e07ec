"""
Redis caching service for ticket inventory listings.

CACHING STRATEGY
================

What we cache:
  - Inventory listing responses (filtered, JSON-serialized)
  - Cache key pattern: "tickets:list:{visibility}:{sorted filter query}"

Why:
  - Agents browse the country inventory far more often than they book
  - Derived ticket status needs a join against bookings on every read

Invalidation strategy:
  - On booking creation: the ticket becomes locked
  - On cancel / expiry: the ticket becomes available again
  - On confirm: locked -> sold
  - On ticket creation: new row in the listing
  - TTL-based expiry as safety net (5 minutes)

  All keys share the "tickets:list:" prefix so we can SCAN and delete them.

Visibility is part of the key: a listing rendered for a manager (with
buying prices) must never be served to an agent.
"""

import json
from typing import Any, Mapping, Optional

import redis.asyncio as redis
from ticketpro.core.config import get_settings
from ticketpro.core.logging import get_logger
from ticketpro.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

_redis_client: Optional[redis.Redis] = None

LISTING_PREFIX = "tickets:list:"


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
            # Test connection
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
        await _redis_client.close()
        _redis_client = None


def make_listing_key(filters: Mapping[str, Any], with_buying_price: bool) -> str:
    visibility = "full" if with_buying_price else "basic"
    query = "&".join(f"{k}={filters[k]}" for k in sorted(filters) if filters[k] is not None)
    return f"{LISTING_PREFIX}{visibility}:{query}"


async def get_cached_listing(key: str) -> Optional[list]:
    client = await get_redis()
    if not client:
        return None

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


async def set_cached_listing(key: str, data: list) -> None:
    """Cache listing response with TTL."""
    client = await get_redis()
    if not client:
        return

    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_ticket_cache() -> None:
    """
    Invalidate all cached inventory listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{LISTING_PREFIX}*", count=100):
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
