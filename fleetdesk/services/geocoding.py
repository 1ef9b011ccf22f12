"""
Place-search adapter (Nominatim-compatible HTTP API).

The first search result wins; there is no disambiguation or confidence
threshold. Resolved coordinates are cached in Redis when a client is given.
"""
import json
import logging
from typing import Protocol

import httpx
import redis.asyncio as aioredis

from fleetdesk.config import get_settings
from fleetdesk.redis_client import cache_get, cache_set
from fleetdesk.services.geo import Coordinate

logger = logging.getLogger(__name__)
settings = get_settings()


class GeocoderError(Exception):
    pass


class PlaceLookup(Protocol):
    async def lookup_place(self, query: str) -> Coordinate | None: ...


class NominatimPlaceLookup:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        redis: aioredis.Redis | None = None,
        base_url: str | None = None,
    ):
        self._client = client
        self._redis = redis
        self._base_url = (base_url or settings.geocoder_base_url).rstrip("/")

    async def lookup_place(self, query: str) -> Coordinate | None:
        query = query.strip()
        if not query:
            return None

        cache_key = f"geocode:{query.lower()}"
        if self._redis is not None:
            cached = await cache_get(self._redis, cache_key)
            if cached:
                lat, lon = json.loads(cached)
                return Coordinate(lat, lon)

        results = await self._search(query)
        if not results:
            logger.info("No place found for %r", query)
            return None

        try:
            coordinate = Coordinate(float(results[0]["lat"]), float(results[0]["lon"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocoderError(f"Malformed place-search result for {query!r}") from exc

        if self._redis is not None:
            await cache_set(
                self._redis,
                cache_key,
                json.dumps([coordinate.latitude, coordinate.longitude]),
                settings.geocoder_cache_ttl_seconds,
            )
        return coordinate

    async def _search(self, query: str) -> list[dict]:
        params = {"q": query, "format": "json", "limit": 1}
        headers = {"User-Agent": settings.geocoder_user_agent}
        try:
            if self._client is not None:
                resp = await self._client.get(f"{self._base_url}/search", params=params, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=settings.geocoder_timeout_seconds) as client:
                    resp = await client.get(f"{self._base_url}/search", params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise GeocoderError(f"Place search failed for {query!r}: {exc}") from exc

        if resp.status_code >= 400:
            raise GeocoderError(f"Place search error {resp.status_code}: {resp.text}")
        return resp.json()
