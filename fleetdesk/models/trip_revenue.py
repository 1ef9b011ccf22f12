import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Numeric, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column
from fleetdesk.database import Base


class TripRevenue(Base):
    __tablename__ = "trip_revenues"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    # One revenue row per settled trip
    trip_id: Mapped[str] = mapped_column(String, ForeignKey("trips.id"), unique=True, nullable=False, index=True)

    distance_covered_km: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    fuel_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    driver_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    customer_charge: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
