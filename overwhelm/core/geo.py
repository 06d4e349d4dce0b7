"""
Geometry helpers. Haversine over (lat, lng) pairs. Pure functions, no state.
"""

import math
from typing import Iterable, Optional, Tuple

from overwhelm.domain.models import Zone

EARTH_RADIUS_KM = 6371.0
WALK_MIN_PER_KM = 12.0  # ~5 km/h

Coordinate = Tuple[float, float]


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_r = math.radians(lat1)
    lat2_r = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.asin(min(1.0, math.sqrt(a)))
    return EARTH_RADIUS_KM * c


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in km between two (lat, lng) pairs."""
    return haversine_km(a[0], a[1], b[0], b[1])


def zone_distance_km(point: Coordinate, zone: Zone) -> float:
    return distance_km(point, zone.center)


def nearest_zone(
    point: Coordinate,
    zones: Iterable[Zone],
    max_km: Optional[float] = None,
) -> Optional[Zone]:
    """
    Closest assignable zone to point, or None.
    Ties resolve to the lowest zone_id. max_km bounds the search (inclusive).
    """
    best: Optional[Zone] = None
    best_d = math.inf
    for zone in sorted(zones, key=lambda z: z.zone_id):
        if not zone.assignable:
            continue
        d = zone_distance_km(point, zone)
        if max_km is not None and d > max_km:
            continue
        if d < best_d:
            best, best_d = zone, d
    return best


def estimate_walk_minutes(km: float) -> int:
    return int(round(km * WALK_MIN_PER_KM))


def format_walk_time(minutes: int) -> str:
    """'25 min walk' / '1h 10min walk'."""
    if minutes < 60:
        return f"{minutes} min walk"
    return f"{minutes // 60}h {minutes % 60}min walk"
