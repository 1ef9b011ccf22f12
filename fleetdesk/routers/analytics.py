"""
Analytics router: revenue timeline, expenditure split, fleet status.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.database import get_db
from fleetdesk.middleware.auth import CurrentUser, require_roles
from fleetdesk.models.trip_revenue import TripRevenue
from fleetdesk.models.vehicle import Vehicle
from fleetdesk.schemas.schemas import ExpenditureItem, FleetStatusResponse, RevenuePoint

router = APIRouter(prefix="/v1/analytics", tags=["Analytics"])


@router.get("/revenue", response_model=list[RevenuePoint])
async def revenue(
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    """Profit per settled trip: customer charge minus fuel and driver cost."""
    result = await db.execute(select(TripRevenue).order_by(TripRevenue.created_at))
    return [
        RevenuePoint(
            trip_id=r.trip_id,
            date=r.created_at,
            value=float(r.customer_charge - r.fuel_cost - r.driver_cost),
        )
        for r in result.scalars().all()
    ]


@router.get("/expenditure", response_model=list[ExpenditureItem])
async def expenditure(
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(
            func.coalesce(func.sum(TripRevenue.driver_cost), 0),
            func.coalesce(func.sum(TripRevenue.fuel_cost), 0),
        )
    )
    salary, fuel = result.one()
    return [
        ExpenditureItem(category="Salary", value=float(salary)),
        ExpenditureItem(category="Expense", value=float(fuel)),
    ]


@router.get("/fleet-status", response_model=FleetStatusResponse)
async def fleet_status(
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Vehicle.status, func.count()).group_by(Vehicle.status))
    counts = {row[0]: row[1] for row in result.all()}
    return FleetStatusResponse(
        on_duty=counts.get("on_duty", 0),
        available=counts.get("available", 0),
        servicing=counts.get("garage", 0),
    )
