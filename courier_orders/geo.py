"""Great-circle distance and small map helpers."""

from math import atan2, cos, radians, sin, sqrt

from courier_orders.models import Coordinates

# Mean radius of Earth in metres (spherical model, not WGS-84).
EARTH_RADIUS_M = 6371e3


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance in metres between two lat/lon points."""
    phi1 = radians(lat1)
    phi2 = radians(lat2)
    dphi = radians(lat2 - lat1)
    dlambda = radians(lon2 - lon1)
    a = sin(dphi / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * atan2(sqrt(a), sqrt(1 - a))


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the distance in km, rounded to two decimals for display."""
    return round(haversine_m(lat1, lon1, lat2, lon2) / 1000, 2)


def travel_time_minutes(distance: float, average_speed_kmh: float = 30) -> float:
    """Estimate travel time in minutes for *distance* km at a city speed."""
    return distance / average_speed_kmh * 60


def center_point(points: list[Coordinates]) -> Coordinates:
    """Return the arithmetic mean of *points*, or (0, 0) when empty."""
    if not points:
        return Coordinates(0.0, 0.0)
    return Coordinates(
        latitude=sum(p.latitude for p in points) / len(points),
        longitude=sum(p.longitude for p in points) / len(points),
    )
