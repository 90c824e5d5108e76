"""
Distance math over GPS trails.

Points can be TrackingPoint rows, dicts with latitude/longitude keys or
plain (lat, lon) pairs. Nothing here touches the database.
"""
from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres between two WGS84 coordinates."""
    lat1, lon1, lat2, lon2 = (float(v) for v in (lat1, lon1, lat2, lon2))
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def _coords(point) -> tuple[float, float]:
    if isinstance(point, dict):
        return float(point["latitude"]), float(point["longitude"])
    if isinstance(point, (tuple, list)):
        return float(point[0]), float(point[1])
    return float(point.latitude), float(point.longitude)


def _recorded_at(point):
    if isinstance(point, dict):
        return point["recorded_at"]
    return point.recorded_at


def total_distance(points: Sequence) -> float:
    """
    Sum of consecutive legs, in the order given, rounded to 2 decimals.
    Callers that hold unordered points should run sort_by_recorded_at first.
    """
    if len(points) < 2:
        return 0.0
    total = 0.0
    prev = _coords(points[0])
    for point in points[1:]:
        cur = _coords(point)
        total += haversine_km(prev[0], prev[1], cur[0], cur[1])
        prev = cur
    return round(total, 2)


def sort_by_recorded_at(points: Iterable) -> list:
    return sorted(points, key=_recorded_at)


def latest_point(points: Iterable) -> Optional[object]:
    points = list(points)
    if not points:
        return None
    return max(points, key=_recorded_at)
