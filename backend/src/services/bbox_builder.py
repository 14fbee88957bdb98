from __future__ import annotations

import math
from typing import Tuple


BBox = Tuple[float, float, float, float]  # min_lon, min_lat, max_lon, max_lat


def expand_bbox_from_center(lon: float, lat: float, radius_m: float) -> BBox:
    """Create a rectangular bbox around (lon,lat) by ±radius_m in both axes.

    Returns (min_lon, min_lat, max_lon, max_lat)
    """
    km = radius_m / 1000.0
    # degrees per km
    dlat = km / 110.574
    cos_lat = math.cos(math.radians(lat))
    dlon = km / (111.320 * cos_lat if cos_lat != 0 else 1e-6)
    return (lon - dlon, lat - dlat, lon + dlon, lat + dlat)


def bbox_contains(bbox: BBox, lon: float, lat: float) -> bool:
    min_lon, min_lat, max_lon, max_lat = bbox
    return min_lon <= lon <= max_lon and min_lat <= lat <= max_lat
