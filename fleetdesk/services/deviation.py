"""
Route deviation detection.

A driver is off-route when the nearest vertex of the planned route polyline
is farther away than the threshold (500 m by default).
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from fleetdesk.models.route_deviation import RouteDeviationWarning
from fleetdesk.services.geo import Coordinate, haversine_m

logger = logging.getLogger(__name__)

DEVIATION_THRESHOLD_M = 500.0


@dataclass(frozen=True)
class DeviationCheck:
    location: Coordinate
    nearest_point: Coordinate
    distance_m: float


def nearest_route_point(
    location: Coordinate, route: Sequence[Coordinate]
) -> tuple[Coordinate, float] | None:
    best: tuple[Coordinate, float] | None = None
    for vertex in route:
        distance = haversine_m(location, vertex)
        if best is None or distance < best[1]:
            best = (vertex, distance)
    return best


def check_route_deviation(
    location: Coordinate,
    route: Sequence[Coordinate],
    threshold_m: float | None = None,
) -> DeviationCheck | None:
    """Return a DeviationCheck when the driver is beyond the threshold, else None."""
    threshold = DEVIATION_THRESHOLD_M if threshold_m is None else threshold_m
    nearest = nearest_route_point(location, route)
    if nearest is None:
        return None
    point, distance = nearest
    if distance <= threshold:
        return None
    logger.warning(
        "Route deviation of %.0fm at (%s, %s)", distance, location.latitude, location.longitude
    )
    return DeviationCheck(location=location, nearest_point=point, distance_m=distance)


def build_warning(
    check: DeviationCheck,
    trip_id: str,
    driver_id: str | None,
    consignment_id: str | None,
    detected_at: datetime | None = None,
) -> RouteDeviationWarning:
    point = check.nearest_point
    return RouteDeviationWarning(
        id=str(uuid.uuid4()),
        trip_id=trip_id,
        driver_id=driver_id,
        consignment_id=consignment_id,
        deviation_latitude=check.location.latitude,
        deviation_longitude=check.location.longitude,
        optimal_route_point_latitude=point.latitude,
        optimal_route_point_longitude=point.longitude,
        distance_from_route=check.distance_m,
        timestamp=detected_at or datetime.now(timezone.utc),
        details=(
            f"Driver deviated approx. {int(check.distance_m)}m from route "
            f"near point ({point.latitude}, {point.longitude})."
        ),
    )


def _display_timestamp(ts: datetime | None) -> str:
    if ts is None:
        return "Time unknown"
    return ts.strftime("%d %b %Y, %H:%M")


def format_notification(warning: RouteDeviationWarning, driver_name: str | None) -> str:
    trip_ref = str(warning.trip_id)[:6]
    when = _display_timestamp(warning.timestamp)
    if warning.driver_id is None:
        return f"Route deviation detected on trip {trip_ref} at {when}. Driver unknown."

    name = driver_name or f"Driver {str(warning.driver_id)[:4]}"
    if warning.distance_from_route is None:
        distance = "an unknown distance"
    else:
        distance = f"{warning.distance_from_route:.0f}m"
    return f"{name} exceeded route bounds by {distance} on trip {trip_ref} at {when}."
