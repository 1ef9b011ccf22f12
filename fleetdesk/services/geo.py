from math import radians, sin, cos, sqrt, atan2
from typing import NamedTuple

EARTH_RADIUS_KM = 6371.0


class Coordinate(NamedTuple):
    latitude: float
    longitude: float


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates, in km."""
    phi1, phi2 = radians(a.latitude), radians(b.latitude)
    dphi = radians(b.latitude - a.latitude)
    dlambda = radians(b.longitude - a.longitude)
    h = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * atan2(sqrt(h), sqrt(1 - h))


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    return haversine_km(a, b) * 1000.0
