import json
from typing import Optional

import redis.asyncio as aioredis
from fastapi import Response
from fastapi.responses import JSONResponse


IDEMPOTENCY_TTL = 86400  # 24 hours


def _cache_key(scope: str, key: str) -> str:
    return f"idempotency:{scope}:{key}"


async def check_idempotency(
    redis: aioredis.Redis,
    scope: str,
    key: Optional[str],
) -> Optional[Response]:
    """
    Returns the cached Response if the Idempotency-Key was already used for
    this scope, otherwise None (proceed normally).
    """
    if not key:
        return None

    cached = await redis.get(_cache_key(scope, key))
    if cached:
        data = json.loads(cached)
        return JSONResponse(
            content=data["body"],
            status_code=data["status_code"],
            headers={"X-Idempotency-Replay": "true"},
        )
    return None


async def store_idempotency_result(
    redis: aioredis.Redis, scope: str, key: str, status_code: int, body: dict
) -> None:
    """Persist the response for the given idempotency key (24h TTL)."""
    await redis.setex(
        _cache_key(scope, key),
        IDEMPOTENCY_TTL,
        json.dumps({"status_code": status_code, "body": body}),
    )
