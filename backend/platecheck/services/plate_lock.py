"""
Per-plate mutual exclusion for lookups.

Two concurrent lookups for the same plate would otherwise both miss the cache,
both call the providers and both rewrite the cache row. The lookup path holds
a Redis lock per plate so only one worker builds at a time; when Redis is
unreachable it degrades to an in-process asyncio.Lock per plate.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager

import redis.asyncio as redis

from platecheck.config import settings
from platecheck.utils.plates import normalize_plate

logger = logging.getLogger(__name__)

LOCK_PREFIX = "platecheck:lock:"

# Redis client (initialized on first use or at startup)
redis_client: redis.Redis | None = None

_local_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


async def get_redis_client() -> redis.Redis:
    """Get or create Redis client."""
    global redis_client
    if redis_client is None:
        redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password,
            decode_responses=True,
        )
    return redis_client


async def close_redis_client():
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None


def _local_lock(plate: str) -> asyncio.Lock:
    lock = _local_locks.get(plate)
    if lock is None:
        lock = asyncio.Lock()
        _local_locks[plate] = lock
    return lock


@asynccontextmanager
async def plate_lock(plate: str):
    """Hold the build lock for one plate. Different plates never contend."""
    plate = normalize_plate(plate)
    lock = None

    try:
        client = await get_redis_client()
        lock = client.lock(
            f"{LOCK_PREFIX}{plate}",
            timeout=settings.plate_lock_timeout,
            blocking_timeout=settings.plate_lock_wait,
        )
        acquired = await lock.acquire()
        if not acquired:
            logger.warning(f"Timed out waiting for Redis lock on {plate}, falling back to local lock")
            lock = None
    except Exception as e:
        logger.warning(f"Redis lock unavailable for {plate} (using local lock): {e}")
        lock = None

    if lock is None:
        local = _local_lock(plate)
        async with local:
            yield
        return

    try:
        yield
    finally:
        try:
            await lock.release()
        except Exception as e:
            # Lock expired or Redis went away; the next holder is unaffected
            logger.warning(f"Failed to release Redis lock for {plate}: {e}")
