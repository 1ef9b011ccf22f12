"""
Trips router: POST /v1/trips (assign), POST /v1/trips/{id}/settle, /end-manually, /cancel,
                PUT /v1/trips/{id}/route, POST /v1/trips/{id}/locations
"""
import json
import logging
import uuid
from datetime import datetime, timezone

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.config import get_settings
from fleetdesk.database import get_db
from fleetdesk.dependencies import get_fleet_store, get_place_lookup
from fleetdesk.middleware.auth import CurrentUser, ensure_driver_is_self, require_roles
from fleetdesk.middleware.idempotency import check_idempotency, store_idempotency_result
from fleetdesk.models.driver_location import DriverLocation
from fleetdesk.models.trip import Trip
from fleetdesk.redis_client import (
    acquire_lock, cache_delete, cache_get, cache_set, current_trip_key, get_redis, release_lock,
)
from fleetdesk.schemas.schemas import (
    LocationPingRequest, LocationPingResponse, RevenueBreakdownSchema, RouteUploadRequest,
    SettleTripRequest, SettleTripResponse, TripAssignRequest, TripResponse, TripStatusResponse,
)
from fleetdesk.services import trip_state
from fleetdesk.services.assignment import assign_trip
from fleetdesk.services.deviation import build_warning, check_route_deviation
from fleetdesk.services.errors import InvalidTripTransition
from fleetdesk.services.geo import Coordinate
from fleetdesk.services.geocoding import PlaceLookup
from fleetdesk.services.settlement import SettlementResult, settle_trip
from fleetdesk.services.store import FleetStore

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/v1/trips", tags=["Trips"])


def _route_key(trip_id: str) -> str:
    return f"trip:{trip_id}:route"


def _deviating_key(trip_id: str) -> str:
    return f"trip:{trip_id}:deviating"


def _settlement_body(result: SettlementResult) -> dict:
    b = result.breakdown
    return SettleTripResponse(
        trip_id=result.trip_id,
        status=trip_state.COMPLETED if result.completed else "partially_settled",
        revenue=RevenueBreakdownSchema(
            distance_km=float(b.distance_km),
            fuel_consumed_litres=float(b.fuel_consumed_litres),
            fuel_cost=float(b.fuel_cost),
            driver_cost=float(b.driver_cost),
            customer_charge=float(b.customer_charge),
        ),
        committed_steps=result.committed_steps,
        failed_step=result.failed_step,
        error=result.error,
    ).model_dump()


async def _load_trip(db: AsyncSession, trip_id: str, user: CurrentUser) -> Trip:
    trip = await db.get(Trip, trip_id)
    if trip is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    ensure_driver_is_self(user, trip.driver_id)
    return trip


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    payload: TripAssignRequest,
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
):
    """
    Assign a pending consignment to an available driver and vehicle.
    The trip starts ongoing; vehicle goes on_duty and the driver "On Trip".
    """
    trip = await assign_trip(
        db,
        payload.consignment_id,
        payload.driver_id,
        payload.vehicle_id,
        start_time=payload.start_time,
        notes=payload.notes,
    )
    await cache_delete(redis, current_trip_key(trip.driver_id))
    return trip


@router.post("/{trip_id}/settle", response_model=SettleTripResponse)
async def settle(
    trip_id: str,
    payload: SettleTripRequest,
    user: CurrentUser = Depends(require_roles("driver", "admin")),
    store: FleetStore = Depends(get_fleet_store),
    places: PlaceLookup = Depends(get_place_lookup),
    redis: aioredis.Redis = Depends(get_redis),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
):
    """
    Settle a finished trip:
      1. Replay a previous response for the same Idempotency-Key
      2. Lock the trip so two settlements cannot interleave
      3. Compute revenue and run the status-update saga
      4. Drop the driver's cached current trip only when everything committed
    """
    ensure_driver_is_self(user, payload.driver_id)

    scope = f"settle:{trip_id}"
    cached = await check_idempotency(redis, scope, idempotency_key)
    if cached:
        return cached

    lock_key = f"trip:{trip_id}:settle_lock"
    lock_owner = uuid.uuid4().hex
    if not await acquire_lock(redis, lock_key, lock_owner, settings.settlement_lock_seconds):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Trip settlement already in progress")

    try:
        result = await settle_trip(
            trip_id, payload.driver_id, payload.vehicle_id, store=store, places=places,
        )
    finally:
        if not await release_lock(redis, lock_key, lock_owner):
            logger.warning("Settle lock for trip=%s expired before release", trip_id)

    body = _settlement_body(result)
    if not result.completed:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=body)

    await cache_delete(redis, current_trip_key(payload.driver_id))
    if idempotency_key:
        await store_idempotency_result(redis, scope, idempotency_key, status.HTTP_200_OK, body)
    return body


async def _close_trip(
    trip_id: str, target: str, user: CurrentUser, db: AsyncSession, redis: aioredis.Redis
) -> TripStatusResponse:
    trip = await _load_trip(db, trip_id, user)
    try:
        trip_state.ensure_transition(trip.status, target)
    except InvalidTripTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    trip.status = target
    trip.end_time = datetime.now(timezone.utc)
    await db.commit()

    await cache_delete(redis, current_trip_key(trip.driver_id))
    await cache_delete(redis, _deviating_key(trip_id))
    logger.info("Trip %s moved to %s by %s", trip_id, target, user.role)
    return TripStatusResponse(trip_id=trip_id, status=target)


@router.post("/{trip_id}/end-manually", response_model=TripStatusResponse)
async def end_manually(
    trip_id: str,
    user: CurrentUser = Depends(require_roles("driver", "admin")),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
):
    return await _close_trip(trip_id, trip_state.ENDED_MANUALLY, user, db, redis)


@router.post("/{trip_id}/cancel", response_model=TripStatusResponse)
async def cancel(
    trip_id: str,
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
):
    return await _close_trip(trip_id, trip_state.CANCELLED, user, db, redis)


@router.put("/{trip_id}/route", status_code=status.HTTP_204_NO_CONTENT)
async def upload_route(
    trip_id: str,
    payload: RouteUploadRequest,
    user: CurrentUser = Depends(require_roles("driver", "admin")),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
):
    """Store the planned route polyline used for deviation checks."""
    await _load_trip(db, trip_id, user)
    points = [[p.lat, p.lng] for p in payload.points]
    await cache_set(redis, _route_key(trip_id), json.dumps(points), settings.route_ttl_seconds)
    await cache_delete(redis, _deviating_key(trip_id))


@router.post("/{trip_id}/locations", response_model=LocationPingResponse)
async def record_location(
    trip_id: str,
    payload: LocationPingRequest,
    user: CurrentUser = Depends(require_roles("driver")),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
):
    """
    Driver location ping. Persists the location and, for an ongoing trip with
    a known route, raises one deviation warning per off-route episode.
    """
    trip = await _load_trip(db, trip_id, user)

    db.add(
        DriverLocation(
            trip_id=trip_id,
            driver_id=trip.driver_id,
            latitude=payload.lat,
            longitude=payload.lng,
            timestamp=payload.timestamp or datetime.now(timezone.utc),
        )
    )
    await db.commit()

    if trip.status != trip_state.ONGOING:
        return LocationPingResponse(recorded=True, deviating=False)

    raw_route = await cache_get(redis, _route_key(trip_id))
    if not raw_route:
        return LocationPingResponse(recorded=True, deviating=False)

    route = [Coordinate(lat, lng) for lat, lng in json.loads(raw_route)]
    check = check_route_deviation(
        Coordinate(payload.lat, payload.lng), route, settings.deviation_threshold_m
    )
    if check is None:
        await cache_delete(redis, _deviating_key(trip_id))
        return LocationPingResponse(recorded=True, deviating=False)

    if await cache_get(redis, _deviating_key(trip_id)):
        # Still in the same off-route episode; already reported.
        return LocationPingResponse(
            recorded=True, deviating=True, distance_from_route_m=round(check.distance_m, 1)
        )

    warning = build_warning(check, trip_id, trip.driver_id, trip.consignment_id)
    db.add(warning)
    await db.commit()
    await cache_set(redis, _deviating_key(trip_id), warning.id, settings.route_ttl_seconds)
    logger.warning("Deviation warning %s raised for trip=%s driver=%s", warning.id, trip_id, trip.driver_id)

    return LocationPingResponse(
        recorded=True,
        deviating=True,
        distance_from_route_m=round(check.distance_m, 1),
        warning_id=warning.id,
    )
