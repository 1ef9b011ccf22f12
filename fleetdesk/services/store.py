"""
Persistence boundary for settlement.

Every write commits on its own: the settlement saga treats each one as an
independent remote call and compensates at the saga level instead.
"""
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.models.consignment import Consignment
from fleetdesk.models.driver import Driver
from fleetdesk.models.reconciliation import SettlementReconciliation
from fleetdesk.models.trip import Trip
from fleetdesk.models.trip_revenue import TripRevenue
from fleetdesk.models.vehicle import Vehicle
from fleetdesk.services.revenue import RevenueBreakdown


class FleetStore(Protocol):
    async def get_trip(self, trip_id: str) -> Trip | None: ...

    async def get_consignment(self, consignment_id: str) -> Consignment | None: ...

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None: ...

    async def get_trip_revenue(self, trip_id: str) -> TripRevenue | None: ...

    async def insert_trip_revenue(self, trip_id: str, breakdown: RevenueBreakdown) -> None: ...

    async def update_vehicle_status(self, vehicle_id: str, status: str) -> None: ...

    async def update_driver_status(self, driver_id: str, status: str) -> None: ...

    async def update_consignment_status(self, consignment_id: str, status: str) -> None: ...

    async def update_trip_status(self, trip_id: str, status: str, ended_at: datetime | None = None) -> None: ...

    async def record_reconciliation(
        self, trip_id: str, failed_step: str, pending_steps: list[str], error: str
    ) -> None: ...

    async def resolve_reconciliations(self, trip_id: str) -> None: ...


class SqlFleetStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_trip(self, trip_id: str) -> Trip | None:
        return await self.db.get(Trip, trip_id)

    async def get_consignment(self, consignment_id: str) -> Consignment | None:
        return await self.db.get(Consignment, consignment_id)

    async def get_vehicle(self, vehicle_id: str) -> Vehicle | None:
        return await self.db.get(Vehicle, vehicle_id)

    async def get_trip_revenue(self, trip_id: str) -> TripRevenue | None:
        result = await self._execute(select(TripRevenue).where(TripRevenue.trip_id == trip_id))
        return result.scalar_one_or_none()

    async def insert_trip_revenue(self, trip_id: str, breakdown: RevenueBreakdown) -> None:
        self.db.add(
            TripRevenue(
                trip_id=trip_id,
                distance_covered_km=breakdown.distance_km,
                fuel_cost=breakdown.fuel_cost,
                driver_cost=breakdown.driver_cost,
                customer_charge=breakdown.customer_charge,
            )
        )
        await self._commit()

    async def update_vehicle_status(self, vehicle_id: str, status: str) -> None:
        await self._update(Vehicle, vehicle_id, status=status)

    async def update_driver_status(self, driver_id: str, status: str) -> None:
        await self._update(Driver, driver_id, status=status)

    async def update_consignment_status(self, consignment_id: str, status: str) -> None:
        await self._update(Consignment, consignment_id, status=status)

    async def update_trip_status(self, trip_id: str, status: str, ended_at: datetime | None = None) -> None:
        values: dict = {"status": status}
        if ended_at is not None:
            values["end_time"] = ended_at
        await self._update(Trip, trip_id, **values)

    async def record_reconciliation(
        self, trip_id: str, failed_step: str, pending_steps: list[str], error: str
    ) -> None:
        self.db.add(
            SettlementReconciliation(
                trip_id=trip_id,
                failed_step=failed_step,
                pending_steps=",".join(pending_steps),
                error=error[:2000],
            )
        )
        await self._commit()

    async def resolve_reconciliations(self, trip_id: str) -> None:
        await self._execute(
            update(SettlementReconciliation)
            .where(
                SettlementReconciliation.trip_id == trip_id,
                SettlementReconciliation.resolved_at.is_(None),
            )
            .values(resolved_at=datetime.now(timezone.utc))
        )
        await self._commit()

    async def _update(self, model, row_id: str, **values) -> None:
        result = await self._execute(update(model).where(model.id == row_id).values(**values))
        if result.rowcount == 0:
            await self.db.rollback()
            raise LookupError(f"{model.__tablename__} row {row_id} not found")
        await self._commit()

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    async def _execute(self, statement):
        # A failed statement leaves a PostgreSQL transaction aborted until rolled back
        try:
            return await self.db.execute(statement)
        except Exception:
            await self.db.rollback()
            raise
