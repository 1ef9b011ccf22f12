"""Initial schema: drivers, vehicles, consignments, trips, revenue, deviations"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "drivers",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("email", sa.String(255), unique=True, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="Available"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_drivers_status", "drivers", ["status"])

    op.create_table(
        "vehicles",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("license_plate_no", sa.String(20), unique=True, nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("model", sa.String(100), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="available"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_vehicles_status", "vehicles", ["status"])

    op.create_table(
        "consignments",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("code", sa.String(20), unique=True, nullable=False),
        sa.Column("type", sa.String(20), nullable=False, server_default="standard"),
        sa.Column("vehicle_type", sa.String(20), nullable=False, server_default="LCV"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("weight", sa.String(32), nullable=False),
        sa.Column("pickup_location", sa.String(500), nullable=False),
        sa.Column("drop_location", sa.String(500), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_consignments_status", "consignments", ["status"])

    op.create_table(
        "trips",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("consignment_id", sa.String, sa.ForeignKey("consignments.id"), nullable=False),
        sa.Column("driver_id", sa.String, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("vehicle_id", sa.String, sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("pickup_location", sa.String(500), nullable=False),
        sa.Column("drop_location", sa.String(500), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="ongoing"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_trips_status", "trips", ["status"])
    op.create_index("idx_trips_driver", "trips", ["driver_id"])
    op.create_index("idx_trips_consignment", "trips", ["consignment_id"])

    op.create_table(
        "trip_revenues",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("trip_id", sa.String, sa.ForeignKey("trips.id"), unique=True, nullable=False),
        sa.Column("distance_covered_km", sa.Numeric(12, 3), nullable=False),
        sa.Column("fuel_cost", sa.Numeric(14, 2), nullable=False),
        sa.Column("driver_cost", sa.Numeric(14, 2), nullable=False),
        sa.Column("customer_charge", sa.Numeric(20, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_trip_revenues_created", "trip_revenues", ["created_at"])

    op.create_table(
        "route_deviation_warnings",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("trip_id", sa.String, sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("driver_id", sa.String, sa.ForeignKey("drivers.id"), nullable=True),
        sa.Column("consignment_id", sa.String, sa.ForeignKey("consignments.id"), nullable=True),
        sa.Column("deviation_latitude", sa.Float, nullable=False),
        sa.Column("deviation_longitude", sa.Float, nullable=False),
        sa.Column("optimal_route_point_latitude", sa.Float, nullable=True),
        sa.Column("optimal_route_point_longitude", sa.Float, nullable=True),
        sa.Column("distance_from_route", sa.Float, nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("acknowledged_by_admin_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_by_driver_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("details", sa.Text, nullable=True),
    )
    op.create_index("idx_deviations_trip", "route_deviation_warnings", ["trip_id"])
    op.create_index("idx_deviations_timestamp", "route_deviation_warnings", ["timestamp"])

    op.create_table(
        "driver_locations",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("trip_id", sa.String, sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("driver_id", sa.String, sa.ForeignKey("drivers.id"), nullable=False),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_driver_locations_trip", "driver_locations", ["trip_id"])

    op.create_table(
        "settlement_reconciliations",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("trip_id", sa.String, sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("failed_step", sa.String(40), nullable=False),
        sa.Column("pending_steps", sa.String(255), nullable=False),
        sa.Column("error", sa.Text, nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_reconciliations_trip", "settlement_reconciliations", ["trip_id"])


def downgrade() -> None:
    op.drop_table("settlement_reconciliations")
    op.drop_table("driver_locations")
    op.drop_table("route_deviation_warnings")
    op.drop_table("trip_revenues")
    op.drop_table("trips")
    op.drop_table("consignments")
    op.drop_table("vehicles")
    op.drop_table("drivers")
