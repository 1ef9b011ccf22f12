"""
Trip revenue calculation: distance, fuel cost, driver cost, customer charge.
"""
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from fleetdesk.config import get_settings
from fleetdesk.services.errors import InvalidWeight, UnknownVehicleClass
from fleetdesk.services.geo import Coordinate, haversine_km

settings = get_settings()

# ---------------------------------------------------------------------------
# Vehicle class mileage (km per litre)
# ---------------------------------------------------------------------------
MILEAGE_KM_PER_LITRE: dict[str, float] = {"HCV": 5.0, "MCV": 7.0, "LCV": 9.0}


@dataclass(frozen=True)
class Rates:
    fuel_cost_per_litre: float = 110.0
    driver_cost_per_km: float = 7.0
    charge_per_kg_per_km: float = 500.0

    @classmethod
    def from_settings(cls) -> "Rates":
        return cls(
            fuel_cost_per_litre=settings.fuel_cost_per_litre,
            driver_cost_per_km=settings.driver_cost_per_km,
            charge_per_kg_per_km=settings.charge_per_kg_per_km,
        )


@dataclass(frozen=True)
class RevenueBreakdown:
    distance_km: Decimal
    fuel_consumed_litres: Decimal
    fuel_cost: Decimal
    driver_cost: Decimal
    customer_charge: Decimal

    @property
    def profit(self) -> Decimal:
        return self.customer_charge - self.fuel_cost - self.driver_cost


def _money(v: float) -> Decimal:
    return Decimal(str(v)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _measure(v: float) -> Decimal:
    return Decimal(str(v)).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)


def mileage_for(vehicle_class: str | None) -> float:
    """Mileage for a vehicle class. Unmapped classes are an error, never 0."""
    key = (vehicle_class or "").strip().upper()
    try:
        return MILEAGE_KM_PER_LITRE[key]
    except KeyError:
        raise UnknownVehicleClass(f"Unknown vehicle class: {vehicle_class!r}") from None


def parse_weight(raw: str | float | None) -> float:
    """Consignment weight arrives as a string; return it in kg."""
    if raw is None:
        raise InvalidWeight("Consignment weight is missing")
    try:
        weight = float(str(raw).strip())
    except ValueError:
        raise InvalidWeight(f"Consignment weight is not numeric: {raw!r}") from None
    if not math.isfinite(weight) or weight < 0:
        raise InvalidWeight(f"Consignment weight out of range: {raw!r}")
    return weight


def great_circle_km(start: Coordinate, end: Coordinate) -> float:
    return haversine_km(start, end)


def compute_trip_revenue(
    distance_km: float,
    weight_kg: float,
    vehicle_class: str,
    rates: Rates | None = None,
) -> RevenueBreakdown:
    """
    fuel_consumed   = distance / mileage
    fuel_cost       = fuel_consumed * fuel_cost_per_litre
    driver_cost     = distance * driver_cost_per_km
    customer_charge = distance * weight * charge_per_kg_per_km
    """
    rates = rates or Rates.from_settings()
    mileage = mileage_for(vehicle_class)

    fuel_consumed = distance_km / mileage
    fuel_cost = fuel_consumed * rates.fuel_cost_per_litre
    driver_cost = distance_km * rates.driver_cost_per_km
    customer_charge = distance_km * weight_kg * rates.charge_per_kg_per_km

    return RevenueBreakdown(
        distance_km=_measure(distance_km),
        fuel_consumed_litres=_measure(fuel_consumed),
        fuel_cost=_money(fuel_cost),
        driver_cost=_money(driver_cost),
        customer_charge=_money(customer_charge),
    )
