import math
from typing import Optional

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in kilometres."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = math.radians(lat2 - lat1)
    dl = math.radians(lon2 - lon1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def distance_between(a, b) -> Optional[float]:
    """Rounded distance between two objects with ``latitude``/``longitude``.

    ``None`` when either side has no coordinates.
    """
    coords = (
        getattr(a, "latitude", None),
        getattr(a, "longitude", None),
        getattr(b, "latitude", None),
        getattr(b, "longitude", None),
    )
    if any(c is None for c in coords):
        return None
    return round(haversine_km(*coords), 2)
