import uuid
from datetime import datetime
from sqlalchemy import String, Text, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from fleetdesk.database import Base


class Consignment(Base):
    __tablename__ = "consignments"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    # priority | medium | standard
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="standard")
    vehicle_type: Mapped[str] = mapped_column(String(20), nullable=False, default="LCV")
    # pending | ongoing | completed
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Kept as the string the app submitted; parsed at settlement time.
    weight: Mapped[str] = mapped_column(String(32), nullable=False)
    pickup_location: Mapped[str] = mapped_column(String(500), nullable=False)
    drop_location: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
