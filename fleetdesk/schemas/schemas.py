from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TripStatusEnum(str, Enum):
    ongoing = "ongoing"
    completed = "completed"
    cancelled = "cancelled"
    ended_manually = "ended_manually"


class VehicleStatusEnum(str, Enum):
    available = "available"
    on_duty = "on_duty"
    garage = "garage"


class ConsignmentTypeEnum(str, Enum):
    priority = "priority"
    medium = "medium"
    standard = "standard"


class ConsignmentStatusEnum(str, Enum):
    pending = "pending"
    ongoing = "ongoing"
    completed = "completed"


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------

class CoordinateSchema(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None


# ---------------------------------------------------------------------------
# Settlement schemas
# ---------------------------------------------------------------------------

class SettleTripRequest(BaseModel):
    driver_id: str
    vehicle_id: str


class RevenueBreakdownSchema(BaseModel):
    distance_km: float
    fuel_consumed_litres: float
    fuel_cost: float
    driver_cost: float
    customer_charge: float
    currency: str = "INR"


class SettleTripResponse(BaseModel):
    trip_id: str
    status: str
    revenue: RevenueBreakdownSchema
    committed_steps: list[str]
    failed_step: Optional[str] = None
    error: Optional[str] = None


class ReconciliationResponse(BaseModel):
    id: str
    trip_id: str
    failed_step: str
    pending_steps: list[str]
    error: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Consignment / assignment schemas
# ---------------------------------------------------------------------------

class ConsignmentCreateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    type: ConsignmentTypeEnum = ConsignmentTypeEnum.standard
    vehicle_type: str = Field(..., min_length=1, max_length=20)
    # kg, as the string the app submits
    weight: str = Field(..., min_length=1, max_length=32)
    pickup_location: str = Field(..., min_length=1, max_length=500)
    drop_location: str = Field(..., min_length=1, max_length=500)
    description: str = ""


class ConsignmentResponse(BaseModel):
    id: str
    code: str
    type: str
    vehicle_type: str
    status: ConsignmentStatusEnum
    weight: str
    pickup_location: str
    drop_location: str
    description: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TripAssignRequest(BaseModel):
    consignment_id: str
    driver_id: str
    vehicle_id: str
    start_time: Optional[datetime] = None
    notes: Optional[str] = None


class TripResponse(BaseModel):
    id: str
    consignment_id: str
    driver_id: str
    vehicle_id: str
    pickup_location: str
    drop_location: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: TripStatusEnum
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Trip schemas
# ---------------------------------------------------------------------------

class TripStatusResponse(BaseModel):
    trip_id: str
    status: TripStatusEnum


class TripWithDetailsResponse(BaseModel):
    trip_id: str
    status: str
    consignment_id: str
    consignment_type: str
    departure_time: Optional[datetime] = None
    start_location: str
    end_location: str
    start_coordinate: Optional[CoordinateSchema] = None
    end_coordinate: Optional[CoordinateSchema] = None
    truck_number: str
    truck_type: str
    truck_model: str
    license_plate: str


class PastTripResponse(BaseModel):
    trip_id: str
    consignment_id: str
    consignment_code: str
    consignment_type: str
    drop_location: str
    end_time: Optional[datetime] = None
    status: TripStatusEnum


class DriverLocationResponse(BaseModel):
    driver_id: str
    trip_id: str
    lat: float
    lng: float
    timestamp: Optional[datetime] = None


class RouteUploadRequest(BaseModel):
    points: list[CoordinateSchema] = Field(..., min_length=1)


class LocationPingRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    timestamp: Optional[datetime] = None


class LocationPingResponse(BaseModel):
    recorded: bool
    deviating: bool
    distance_from_route_m: Optional[float] = None
    warning_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Deviation schemas
# ---------------------------------------------------------------------------

class DeviationWarningResponse(BaseModel):
    id: str
    trip_id: str
    driver_id: Optional[str] = None
    consignment_id: Optional[str] = None
    deviation_latitude: float
    deviation_longitude: float
    optimal_route_point_latitude: Optional[float] = None
    optimal_route_point_longitude: Optional[float] = None
    distance_from_route: Optional[float] = None
    timestamp: Optional[datetime] = None
    acknowledged_by_admin_at: Optional[datetime] = None
    acknowledged_by_driver_at: Optional[datetime] = None
    details: Optional[str] = None

    model_config = {"from_attributes": True}


class DeviationNotification(BaseModel):
    id: str
    message: str
    timestamp: Optional[datetime] = None
    warning: DeviationWarningResponse


# ---------------------------------------------------------------------------
# Analytics schemas
# ---------------------------------------------------------------------------

class RevenuePoint(BaseModel):
    trip_id: str
    date: datetime
    value: float


class ExpenditureItem(BaseModel):
    category: str
    value: float


class FleetStatusResponse(BaseModel):
    on_duty: int
    available: int
    servicing: int
