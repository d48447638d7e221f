"""
Great-circle distance for ProviderMatch.

Haversine distance between latitude/longitude points given in degrees.
"""

import math
from typing import Dict, Optional

from ..config import EARTH_RADIUS_KM


def has_coordinates(point: Optional[Dict]) -> bool:
    """
    Check whether a point carries usable latitude and longitude.

    Args:
        point: Dictionary with latitude/longitude keys, or None

    Returns:
        True if both coordinates are present and finite
    """
    if not isinstance(point, dict):
        return False

    for key in ("latitude", "longitude"):
        value = point.get(key)
        if value is None or isinstance(value, bool):
            return False
        try:
            if not math.isfinite(float(value)):
                return False
        except (TypeError, ValueError):
            return False

    return True


def distance_km(point_a: Dict, point_b: Dict) -> float:
    """
    Calculate haversine distance between two points in kilometers.

    Missing coordinates are not guarded here; NaN inputs yield NaN.

    Args:
        point_a: First point {"latitude", "longitude"}
        point_b: Second point {"latitude", "longitude"}

    Returns:
        Distance in kilometers
    """
    lat1 = float(point_a["latitude"])
    lon1 = float(point_a["longitude"])
    lat2 = float(point_b["latitude"])
    lon2 = float(point_b["longitude"])

    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (math.sin(d_lat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(d_lon / 2) ** 2)
    if a > 1.0:
        a = 1.0  # rounding near antipodes
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c
