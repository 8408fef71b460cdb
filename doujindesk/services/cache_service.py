"""
Redis cache for ticket catalog reads and sales statistics.

Cached documents:
  - tickets:stats           sales statistics (full recompute over the ledger)
  - tickets:types:active    the active ticket type listing

Any ledger or catalog mutation (checkout, refund, purchase edit, ticket type
add/update/delete) drops every "tickets:*" key once its transaction has
committed. REDIS_CACHE_TTL bounds how stale a document can get if an
invalidation is missed.

With Redis disabled or unreachable every read is a miss and every write is a
no-op; the database stays authoritative.
"""

import json
from typing import Optional

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from doujindesk.core.config import get_settings
from doujindesk.core.logging import get_logger
from doujindesk.core.metrics import record_cache_operation

logger = get_logger(__name__)
settings = get_settings()

KEY_PREFIX = "tickets"


def cache_key(*parts: str) -> str:
    return ":".join((KEY_PREFIX, *parts))


SALES_STATS_KEY = cache_key("stats")
ACTIVE_TYPES_KEY = cache_key("types", "active")

_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Shared async client, connected lazily. None when caching is off or Redis is down."""
    global _client

    if not settings.REDIS_ENABLED:
        return None
    if _client is not None:
        return _client

    client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        retry_on_timeout=True,
    )
    try:
        await client.ping()
    except redis.RedisError as e:
        logger.error("redis_connection_failed", url=settings.REDIS_URL, error=str(e))
        await client.aclose()
        return None

    logger.info("redis_connected", url=settings.REDIS_URL)
    _client = client
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


async def get_cached(key: str) -> Optional[dict | list]:
    client = await get_redis()
    if client is None:
        return None

    try:
        raw = await client.get(key)
    except redis.RedisError as e:
        logger.error("cache_get_error", key=key, error=str(e))
        return None

    record_cache_operation("get", hit=raw is not None)
    if raw is None:
        logger.debug("cache_miss", key=key)
        return None
    logger.debug("cache_hit", key=key)
    return json.loads(raw)


async def set_cached(key: str, data: dict | list) -> None:
    client = await get_redis()
    if client is None:
        return

    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
    except redis.RedisError as e:
        logger.error("cache_set_error", key=key, error=str(e))
        return
    logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)


async def _ticket_keys(client: redis.Redis) -> list[str]:
    return [key async for key in client.scan_iter(match=cache_key("*"), count=100)]


async def invalidate_ticket_cache() -> None:
    """Drop every cached stats and catalog document."""
    client = await get_redis()
    if client is None:
        return

    try:
        keys = await _ticket_keys(client)
        if keys:
            await client.delete(*keys)
    except redis.RedisError as e:
        logger.error("cache_invalidation_error", error=str(e))
        return
    logger.info("cache_invalidated", keys_deleted=len(keys))


async def commit_and_invalidate(db: AsyncSession) -> None:
    """
    Commit the request's writes, then drop cached documents. Dropping them
    first would let a concurrent stats read cache the pre-commit ledger.
    """
    await db.commit()
    await invalidate_ticket_cache()


async def get_cache_stats() -> dict:
    """Hit rate and cached ticket documents, reported by /health."""
    client = await get_redis()
    if client is None:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        keys = await _ticket_keys(client)
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "status": "connected",
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
        "ticket_keys": sorted(keys),
    }
