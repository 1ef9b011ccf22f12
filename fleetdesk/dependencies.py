"""
FastAPI dependencies for the settlement collaborators.

Routers never build these themselves so tests can swap in fakes through
``app.dependency_overrides``.
"""
import redis.asyncio as aioredis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.database import get_db
from fleetdesk.redis_client import get_redis
from fleetdesk.services.geocoding import NominatimPlaceLookup, PlaceLookup
from fleetdesk.services.store import FleetStore, SqlFleetStore


async def get_fleet_store(db: AsyncSession = Depends(get_db)) -> FleetStore:
    return SqlFleetStore(db)


async def get_place_lookup(redis: aioredis.Redis = Depends(get_redis)) -> PlaceLookup:
    return NominatimPlaceLookup(redis=redis)
