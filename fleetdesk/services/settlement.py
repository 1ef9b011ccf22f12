"""
Trip settlement.

Flow:
  1. Load the trip; refuse if the driver or vehicle is not the assigned one,
     or if it is already in a terminal status
  2. Resolve pickup + drop addresses concurrently (first place-search hit)
  3. Load consignment weight and vehicle class
  4. Great-circle distance → fuel / driver cost, customer charge
  5. Saga: revenue row → vehicle available → driver Available →
     consignment completed → trip completed
     Each step is retried with exponential backoff. If a step still fails the
     saga stops and a reconciliation task is recorded; re-running settlement
     resumes without inserting a second revenue row.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable

from fleetdesk.config import get_settings
from fleetdesk.services.errors import (
    ConsignmentNotFound,
    GeocodingFailed,
    TripAlreadyClosed,
    TripMismatch,
    TripNotFound,
    VehicleNotFound,
)
from fleetdesk.services.geo import Coordinate
from fleetdesk.services.geocoding import GeocoderError, PlaceLookup
from fleetdesk.services.revenue import (
    Rates,
    RevenueBreakdown,
    compute_trip_revenue,
    great_circle_km,
    parse_weight,
)
from fleetdesk.services.store import FleetStore
from fleetdesk.services import trip_state

logger = logging.getLogger(__name__)
settings = get_settings()

STEP_INSERT_REVENUE = "insert_revenue"
STEP_VEHICLE_AVAILABLE = "vehicle_available"
STEP_DRIVER_AVAILABLE = "driver_available"
STEP_CONSIGNMENT_COMPLETED = "consignment_completed"
STEP_TRIP_COMPLETED = "trip_completed"

SAGA_STEPS = (
    STEP_INSERT_REVENUE,
    STEP_VEHICLE_AVAILABLE,
    STEP_DRIVER_AVAILABLE,
    STEP_CONSIGNMENT_COMPLETED,
    STEP_TRIP_COMPLETED,
)

VEHICLE_STATUS_AVAILABLE = "available"
DRIVER_STATUS_AVAILABLE = "Available"
CONSIGNMENT_STATUS_COMPLETED = "completed"


@dataclass
class SettlementResult:
    trip_id: str
    breakdown: RevenueBreakdown
    committed_steps: list[str] = field(default_factory=list)
    failed_step: str | None = None
    error: str | None = None

    @property
    def completed(self) -> bool:
        return self.failed_step is None

    @property
    def pending_steps(self) -> list[str]:
        return [s for s in SAGA_STEPS if s not in self.committed_steps]


async def settle_trip(
    trip_id: str,
    driver_id: str,
    vehicle_id: str,
    store: FleetStore,
    places: PlaceLookup,
    rates: Rates | None = None,
    attempts: int | None = None,
    backoff_seconds: float | None = None,
) -> SettlementResult:
    """
    Compute revenue for a finished trip and close out the vehicle, driver,
    consignment and trip. Raises SettlementError before any write happens;
    write failures are reported in the returned SettlementResult.
    """
    attempts = attempts or settings.settlement_step_attempts
    backoff = settings.settlement_backoff_seconds if backoff_seconds is None else backoff_seconds

    trip = await store.get_trip(trip_id)
    if trip is None:
        raise TripNotFound(f"Trip {trip_id} not found")
    if trip.driver_id != driver_id or trip.vehicle_id != vehicle_id:
        raise TripMismatch(f"Driver {driver_id} / vehicle {vehicle_id} are not assigned to trip {trip_id}")
    if trip_state.is_terminal(trip.status):
        raise TripAlreadyClosed(f"Trip {trip_id} is already {trip.status}")

    start, end = await asyncio.gather(
        _resolve(places, trip.pickup_location),
        _resolve(places, trip.drop_location),
    )

    consignment_id = trip.consignment_id
    consignment = await store.get_consignment(consignment_id)
    if consignment is None:
        raise ConsignmentNotFound(f"Consignment {consignment_id} not found")
    weight_kg = parse_weight(consignment.weight)

    vehicle = await store.get_vehicle(vehicle_id)
    if vehicle is None:
        raise VehicleNotFound(f"Vehicle {vehicle_id} not found")

    distance_km = great_circle_km(start, end)
    breakdown = compute_trip_revenue(distance_km, weight_kg, vehicle.type, rates)
    logger.info(
        "Settling trip=%s distance_km=%s fuel_cost=%s driver_cost=%s customer_charge=%s",
        trip_id, breakdown.distance_km, breakdown.fuel_cost,
        breakdown.driver_cost, breakdown.customer_charge,
    )

    result = SettlementResult(trip_id=trip_id, breakdown=breakdown)

    existing_revenue = await store.get_trip_revenue(trip_id)

    async def insert_revenue() -> None:
        if existing_revenue is not None:
            logger.info("Revenue for trip=%s already recorded, reusing it", trip_id)
            return
        await store.insert_trip_revenue(trip_id, breakdown)

    steps: list[tuple[str, Callable[[], Awaitable[None]]]] = [
        (STEP_INSERT_REVENUE, insert_revenue),
        (STEP_VEHICLE_AVAILABLE, lambda: store.update_vehicle_status(vehicle_id, VEHICLE_STATUS_AVAILABLE)),
        (STEP_DRIVER_AVAILABLE, lambda: store.update_driver_status(driver_id, DRIVER_STATUS_AVAILABLE)),
        (
            STEP_CONSIGNMENT_COMPLETED,
            lambda: store.update_consignment_status(consignment_id, CONSIGNMENT_STATUS_COMPLETED),
        ),
        (
            STEP_TRIP_COMPLETED,
            lambda: store.update_trip_status(trip_id, trip_state.COMPLETED, ended_at=datetime.now(timezone.utc)),
        ),
    ]

    for name, action in steps:
        error = await _run_step(trip_id, name, action, attempts, backoff)
        if error is not None:
            result.failed_step = name
            result.error = error
            break
        result.committed_steps.append(name)

    if result.completed:
        try:
            await store.resolve_reconciliations(trip_id)
        except Exception as exc:
            logger.error("Could not resolve reconciliations for trip=%s: %s", trip_id, exc)
        logger.info("Trip %s settled", trip_id)
        return result

    logger.error(
        "Settlement of trip=%s stopped at step=%s after %d attempts: %s",
        trip_id, result.failed_step, attempts, result.error,
    )
    try:
        await store.record_reconciliation(trip_id, result.failed_step, result.pending_steps, result.error or "")
    except Exception as exc:
        logger.error("Could not record reconciliation for trip=%s: %s", trip_id, exc, exc_info=True)
    return result


async def _resolve(places: PlaceLookup, address: str) -> Coordinate:
    try:
        coordinate = await places.lookup_place(address)
    except GeocoderError as exc:
        raise GeocodingFailed(f"Could not geocode {address!r}: {exc}") from exc
    if coordinate is None:
        raise GeocodingFailed(f"Could not geocode {address!r}")
    return coordinate


async def _run_step(
    trip_id: str,
    name: str,
    action: Callable[[], Awaitable[None]],
    attempts: int,
    backoff: float,
) -> str | None:
    """Run one saga step with retries. Returns the last error text, or None on success."""
    last_error = ""
    for attempt in range(1, attempts + 1):
        try:
            await action()
            logger.info("trip=%s step=%s committed", trip_id, name)
            return None
        except Exception as exc:
            last_error = str(exc) or exc.__class__.__name__
            logger.warning("trip=%s step=%s attempt %d/%d failed: %s", trip_id, name, attempt, attempts, exc)
            if attempt < attempts and backoff > 0:
                await asyncio.sleep(backoff * 2 ** (attempt - 1))
    return last_error
