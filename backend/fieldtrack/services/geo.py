"""Great-circle geometry and impossible-travel detection.

All distances are in meters, speeds in km/h. Points are (latitude, longitude)
pairs in degrees.
"""
import math
from datetime import datetime
from typing import Iterable, Tuple

EARTH_RADIUS_KM = 6371
IMPOSSIBLE_TRAVEL_SPEED_KMH = 200
# Two fixes with the same timestamp this close together are the same fix
SAME_INSTANT_TOLERANCE_METERS = 10

Point = Tuple[float, float]


def distance_meters(p1: Point, p2: Point) -> float:
    """Haversine distance between two points."""
    lat1, lon1 = p1
    lat2, lon2 = p2
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return EARTH_RADIUS_KM * 1000 * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def inside(point: Point, center: Point, radius_meters: float) -> bool:
    return distance_meters(point, center) <= radius_meters


def route_distance_meters(points: Iterable[Point]) -> float:
    """Sum of distances over consecutive pairs."""
    total = 0.0
    previous = None
    for point in points:
        if previous is not None:
            total += distance_meters(previous, point)
        previous = point
    return total


def detect_impossible_travel(
    earlier: Point,
    earlier_at: datetime,
    later: Point,
    later_at: datetime,
    max_speed_kmh: float = IMPOSSIBLE_TRAVEL_SPEED_KMH,
) -> dict:
    """Implied speed between two timestamped fixes.

    Returns {"speed_kmh": float, "impossible": bool}. With no elapsed time the
    speed is infinite, and the pair is only impossible if the fixes are more
    than SAME_INSTANT_TOLERANCE_METERS apart.
    """
    meters = distance_meters(earlier, later)
    seconds = abs((later_at - earlier_at).total_seconds())

    if seconds == 0:
        return {
            "speed_kmh": math.inf,
            "impossible": meters > SAME_INSTANT_TOLERANCE_METERS,
            "distance_meters": meters,
        }

    speed_kmh = (meters / 1000) / (seconds / 3600)
    return {
        "speed_kmh": speed_kmh,
        "impossible": speed_kmh > max_speed_kmh,
        "distance_meters": meters,
    }
