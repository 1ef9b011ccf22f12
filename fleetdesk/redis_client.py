import redis.asyncio as aioredis
from fleetdesk.config import get_settings

settings = get_settings()

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=100,
        )
    return _redis_pool


async def close_redis() -> None:
    global _redis_pool
    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None


# ---------------------------------------------------------------------------
# Locks
# ---------------------------------------------------------------------------

async def acquire_lock(redis: aioredis.Redis, key: str, owner: str, ttl_seconds: int) -> bool:
    """SET NX with expiry. Returns False if someone else holds the key."""
    acquired = await redis.set(key, owner, nx=True, ex=ttl_seconds)
    return bool(acquired)


_RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


async def release_lock(redis: aioredis.Redis, key: str, owner: str) -> bool:
    """Delete the lock only while ``owner`` still holds it. Returns False if it had expired or moved on."""
    released = await redis.eval(_RELEASE_LOCK_SCRIPT, 1, key, owner)
    return bool(released)


# ---------------------------------------------------------------------------
# Cache helpers
# ---------------------------------------------------------------------------

async def cache_set(redis: aioredis.Redis, key: str, value: str, ttl: int) -> None:
    await redis.setex(key, ttl, value)


async def cache_get(redis: aioredis.Redis, key: str) -> str | None:
    return await redis.get(key)


async def cache_delete(redis: aioredis.Redis, key: str) -> None:
    await redis.delete(key)


def current_trip_key(driver_id: str) -> str:
    return f"driver:{driver_id}:current_trip"
