"""
Consignment intake and trip assignment.

Assigning books the consignment, vehicle and driver in one transaction:
  - Trip created → ongoing, pickup / drop copied from the consignment
  - Vehicle → on_duty
  - Driver → "On Trip"
  - Consignment → ongoing
Rows are read with SELECT FOR UPDATE so two admins cannot book the same
vehicle or driver at once.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.models.consignment import Consignment
from fleetdesk.models.driver import Driver
from fleetdesk.models.trip import Trip
from fleetdesk.models.vehicle import Vehicle
from fleetdesk.services import trip_state
from fleetdesk.services.errors import (
    ConsignmentNotFound,
    ConsignmentNotPending,
    DriverNotFound,
    DriverUnavailable,
    DuplicateConsignmentCode,
    FleetError,
    VehicleClassMismatch,
    VehicleNotFound,
    VehicleUnavailable,
)
from fleetdesk.services.revenue import mileage_for, parse_weight

logger = logging.getLogger(__name__)

CONSIGNMENT_PENDING = "pending"
CONSIGNMENT_ONGOING = "ongoing"
VEHICLE_AVAILABLE = "available"
VEHICLE_ON_DUTY = "on_duty"
DRIVER_AVAILABLE = "Available"
DRIVER_ON_TRIP = "On Trip"


def _vehicle_class(raw: str) -> str:
    mileage_for(raw)  # raises UnknownVehicleClass
    return raw.strip().upper()


async def create_consignment(
    db: AsyncSession,
    code: str,
    consignment_type: str,
    vehicle_type: str,
    weight: str,
    pickup_location: str,
    drop_location: str,
    description: str = "",
) -> Consignment:
    """Store a pending consignment; weight and vehicle class are validated up front."""
    parse_weight(weight)
    consignment = Consignment(
        code=code.strip(),
        type=consignment_type,
        vehicle_type=_vehicle_class(vehicle_type),
        status=CONSIGNMENT_PENDING,
        description=description,
        weight=weight.strip(),
        pickup_location=pickup_location,
        drop_location=drop_location,
    )
    db.add(consignment)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateConsignmentCode(f"Consignment code {code!r} already exists") from None
    await db.refresh(consignment)
    logger.info("Consignment %s created (%s, %s)", consignment.code, consignment.type, consignment.vehicle_type)
    return consignment


async def assign_trip(
    db: AsyncSession,
    consignment_id: str,
    driver_id: str,
    vehicle_id: str,
    start_time: datetime | None = None,
    notes: str | None = None,
) -> Trip:
    try:
        consignment = await _locked(db, Consignment, consignment_id)
        if consignment is None:
            raise ConsignmentNotFound(f"Consignment {consignment_id} not found")
        if consignment.status != CONSIGNMENT_PENDING:
            raise ConsignmentNotPending(f"Consignment {consignment.code} is already {consignment.status}")

        vehicle = await _locked(db, Vehicle, vehicle_id)
        if vehicle is None:
            raise VehicleNotFound(f"Vehicle {vehicle_id} not found")
        if vehicle.status != VEHICLE_AVAILABLE:
            raise VehicleUnavailable(f"Vehicle {vehicle.license_plate_no} is {vehicle.status}")
        if _vehicle_class(vehicle.type) != consignment.vehicle_type:
            raise VehicleClassMismatch(
                f"Consignment {consignment.code} needs a {consignment.vehicle_type}, "
                f"vehicle {vehicle.license_plate_no} is {vehicle.type}"
            )

        driver = await _locked(db, Driver, driver_id)
        if driver is None:
            raise DriverNotFound(f"Driver {driver_id} not found")
        if driver.status != DRIVER_AVAILABLE:
            raise DriverUnavailable(f"Driver {driver.name} is {driver.status}")
    except FleetError:
        await db.rollback()
        raise

    trip = Trip(
        consignment_id=consignment.id,
        driver_id=driver.id,
        vehicle_id=vehicle.id,
        pickup_location=consignment.pickup_location,
        drop_location=consignment.drop_location,
        start_time=start_time or datetime.now(timezone.utc),
        status=trip_state.ONGOING,
        notes=notes,
    )
    db.add(trip)
    consignment.status = CONSIGNMENT_ONGOING
    vehicle.status = VEHICLE_ON_DUTY
    driver.status = DRIVER_ON_TRIP

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(trip)

    logger.info(
        "Trip %s assigned: consignment=%s driver=%s vehicle=%s",
        trip.id, consignment.code, driver.id, vehicle.license_plate_no,
    )
    return trip


async def _locked(db: AsyncSession, model, row_id: str):
    result = await db.execute(select(model).where(model.id == row_id).with_for_update())
    return result.scalar_one_or_none()
