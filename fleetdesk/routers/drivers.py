"""
Drivers router: GET /v1/drivers/{id}/current-trip, /past-trips, /location
"""
import asyncio
import logging

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.config import get_settings
from fleetdesk.database import get_db
from fleetdesk.dependencies import get_place_lookup
from fleetdesk.middleware.auth import CurrentUser, ensure_driver_is_self, require_roles
from fleetdesk.models.consignment import Consignment
from fleetdesk.models.driver_location import DriverLocation
from fleetdesk.models.trip import Trip
from fleetdesk.models.vehicle import Vehicle
from fleetdesk.redis_client import cache_get, cache_set, current_trip_key, get_redis
from fleetdesk.schemas.schemas import (
    CoordinateSchema, DriverLocationResponse, PastTripResponse, TripWithDetailsResponse,
)
from fleetdesk.services import trip_state
from fleetdesk.services.geo import Coordinate
from fleetdesk.services.geocoding import PlaceLookup

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/v1/drivers", tags=["Drivers"])


def _to_schema(coordinate: Coordinate | None) -> CoordinateSchema | None:
    if coordinate is None:
        return None
    return CoordinateSchema(lat=coordinate.latitude, lng=coordinate.longitude)


@router.get("/{driver_id}/current-trip", response_model=TripWithDetailsResponse)
async def current_trip(
    driver_id: str,
    user: CurrentUser = Depends(require_roles("driver", "admin")),
    db: AsyncSession = Depends(get_db),
    places: PlaceLookup = Depends(get_place_lookup),
    redis: aioredis.Redis = Depends(get_redis),
):
    """
    The driver's ongoing trip with its consignment and vehicle details.
    Pickup / drop coordinates are best effort: a failed lookup leaves them null.
    """
    ensure_driver_is_self(user, driver_id)

    cached = await cache_get(redis, current_trip_key(driver_id))
    if cached:
        return TripWithDetailsResponse.model_validate_json(cached)

    result = await db.execute(
        select(Trip)
        .where(Trip.driver_id == driver_id, Trip.status == trip_state.ONGOING)
        .order_by(Trip.created_at.desc())
        .limit(1)
    )
    trip = result.scalar_one_or_none()
    if trip is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No assigned trip found for this driver")

    vehicle = await db.get(Vehicle, trip.vehicle_id)
    consignment = await db.get(Consignment, trip.consignment_id)
    if vehicle is None or consignment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Failed to fetch consignment or vehicle details",
        )

    start, end = await asyncio.gather(
        places.lookup_place(trip.pickup_location),
        places.lookup_place(trip.drop_location),
        return_exceptions=True,
    )
    for address, outcome in ((trip.pickup_location, start), (trip.drop_location, end)):
        if isinstance(outcome, Exception):
            logger.warning("Geocoding failed for %r: %s", address, outcome)

    details = TripWithDetailsResponse(
        trip_id=trip.id,
        status=trip.status,
        consignment_id=consignment.id,
        consignment_type=consignment.type,
        departure_time=trip.start_time,
        start_location=trip.pickup_location,
        end_location=trip.drop_location,
        start_coordinate=_to_schema(start if isinstance(start, Coordinate) else None),
        end_coordinate=_to_schema(end if isinstance(end, Coordinate) else None),
        truck_number=vehicle.id,
        truck_type=vehicle.type,
        truck_model=vehicle.model,
        license_plate=vehicle.license_plate_no,
    )
    await cache_set(
        redis, current_trip_key(driver_id), details.model_dump_json(), settings.current_trip_cache_seconds
    )
    return details


@router.get("/{driver_id}/past-trips", response_model=list[PastTripResponse])
async def past_trips(
    driver_id: str,
    limit: int = 50,
    user: CurrentUser = Depends(require_roles("driver", "admin")),
    db: AsyncSession = Depends(get_db),
):
    """Finished trips (completed, ended manually or cancelled), most recent first."""
    ensure_driver_is_self(user, driver_id)

    result = await db.execute(
        select(Trip, Consignment.code, Consignment.type)
        .join(Consignment, Consignment.id == Trip.consignment_id)
        .where(Trip.driver_id == driver_id, Trip.status.in_(trip_state.TERMINAL_STATUSES))
        .order_by(Trip.end_time.desc().nulls_last(), Trip.created_at.desc())
        .limit(min(max(limit, 1), 200))
    )
    return [
        PastTripResponse(
            trip_id=trip.id,
            consignment_id=trip.consignment_id,
            consignment_code=code,
            consignment_type=consignment_type,
            drop_location=trip.drop_location,
            end_time=trip.end_time,
            status=trip.status,
        )
        for trip, code, consignment_type in result.all()
    ]


@router.get("/{driver_id}/location", response_model=DriverLocationResponse)
async def latest_location(
    driver_id: str,
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    """Last reported position, for the admin live-tracking map."""
    result = await db.execute(
        select(DriverLocation)
        .where(DriverLocation.driver_id == driver_id)
        .order_by(DriverLocation.timestamp.desc(), DriverLocation.created_at.desc())
        .limit(1)
    )
    location = result.scalar_one_or_none()
    if location is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No location reported for this driver")
    return DriverLocationResponse(
        driver_id=location.driver_id,
        trip_id=location.trip_id,
        lat=location.latitude,
        lng=location.longitude,
        timestamp=location.timestamp,
    )
