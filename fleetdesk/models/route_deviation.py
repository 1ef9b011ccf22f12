import uuid
from datetime import datetime
from sqlalchemy import String, Float, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column
from fleetdesk.database import Base


class RouteDeviationWarning(Base):
    __tablename__ = "route_deviation_warnings"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    trip_id: Mapped[str] = mapped_column(String, ForeignKey("trips.id"), nullable=False, index=True)
    driver_id: Mapped[str | None] = mapped_column(String, ForeignKey("drivers.id"), nullable=True)
    consignment_id: Mapped[str | None] = mapped_column(String, ForeignKey("consignments.id"), nullable=True)

    deviation_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    deviation_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    optimal_route_point_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    optimal_route_point_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    distance_from_route: Mapped[float | None] = mapped_column(Float, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
    acknowledged_by_admin_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    acknowledged_by_driver_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
