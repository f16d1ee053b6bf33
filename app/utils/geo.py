from math import radians, sin, cos, sqrt, atan2, isfinite
from typing import NamedTuple, Optional

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.0

# Longitude degrees shrink toward the poles; never divide by less than this
MIN_COS_LAT = 0.01


class BoundingBox(NamedTuple):
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


def is_finite_number(value) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return isfinite(float(value))
    except (TypeError, ValueError):
        return False


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (Haversine)."""
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = (
        sin(dlat / 2) ** 2
        + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    )
    # Rounding can push a a hair past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def bounding_box(lat: float, lon: float, radius_km: float) -> BoundingBox:
    """
    Rectangle that contains every point within radius_km of (lat, lon).

    Used as a cheap indexed pre-filter; the exact Haversine check runs later.
    """
    lat_delta = radius_km / KM_PER_DEGREE_LAT
    cos_lat = max(abs(cos(radians(lat))), MIN_COS_LAT)
    lng_delta = radius_km / (KM_PER_DEGREE_LAT * cos_lat)
    return BoundingBox(
        min_lat=lat - lat_delta,
        max_lat=lat + lat_delta,
        min_lng=lon - lng_delta,
        max_lng=lon + lng_delta,
    )


def has_coordinates(record) -> bool:
    """True when a salon (model or dict) carries both coordinates."""
    if isinstance(record, dict):
        lat, lng = record.get("latitude"), record.get("longitude")
    else:
        lat = getattr(record, "latitude", None)
        lng = getattr(record, "longitude", None)
    return is_finite_number(lat) and is_finite_number(lng)


def distance_from(center_lat: Optional[float], center_lng: Optional[float], record):
    """Distance in km from a center to a salon, or None when either side lacks coordinates."""
    if not (is_finite_number(center_lat) and is_finite_number(center_lng)):
        return None
    if not has_coordinates(record):
        return None
    if isinstance(record, dict):
        lat, lng = record["latitude"], record["longitude"]
    else:
        lat, lng = record.latitude, record.longitude
    return distance_km(float(center_lat), float(center_lng), float(lat), float(lng))
