"""
DoggyClub Backend — Geodesic Helpers
======================================

What:  Great-circle distance, coordinate validation, and the bounding box
       used to prefilter radius queries in SQL.
Why:   The radius search runs in two stages. A cheap box filter on indexed
       latitude/longitude columns cuts the candidate set down in the
       database; an exact haversine check in Python then decides membership.
       Neither stage needs a spatial extension.

Accuracy:
    Haversine on a spherical earth (R = 6 371 008.8 m, the IUGG mean radius)
    is within ~0.5% of the ellipsoidal distance, well inside GPS noise at
    the sub-10 km radii this service accepts.
"""

import math
from dataclasses import dataclass
from typing import List, Tuple

from app.exceptions import ValidationError

EARTH_RADIUS_M = 6_371_008.8

# Length of one degree of latitude (and of longitude at the equator)
METERS_PER_DEGREE = math.pi * EARTH_RADIUS_M / 180.0


def validate_coordinates(latitude: float, longitude: float) -> None:
    """Raise ValidationError unless latitude ∈ [-90, 90] and longitude ∈ [-180, 180]."""
    if latitude is None or not -90.0 <= latitude <= 90.0:
        raise ValidationError(
            message=f"Latitude {latitude} is out of range. Must be between -90 and 90.",
            field="latitude",
        )
    if longitude is None or not -180.0 <= longitude <= 180.0:
        raise ValidationError(
            message=f"Longitude {longitude} is out of range. Must be between -180 and 180.",
            field="longitude",
        )


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2.0) ** 2
    # min() guards against a > 1 from float rounding on antipodal points
    return 2.0 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


@dataclass(frozen=True)
class BoundingBox:
    """
    Lat/lng rectangle enclosing every point within a radius of a center.

    lng_ranges holds one (min, max) pair normally, two when the box crosses
    the antimeridian, and a single full-circle pair near the poles.
    """

    min_lat: float
    max_lat: float
    lng_ranges: Tuple[Tuple[float, float], ...]

    @classmethod
    def around(cls, latitude: float, longitude: float, radius_meters: float) -> "BoundingBox":
        dlat = radius_meters / METERS_PER_DEGREE
        min_lat = latitude - dlat
        max_lat = latitude + dlat

        # The circle reaches a pole: every longitude is in range
        if min_lat <= -90.0 or max_lat >= 90.0:
            return cls(
                min_lat=max(min_lat, -90.0),
                max_lat=min(max_lat, 90.0),
                lng_ranges=((-180.0, 180.0),),
            )

        # Widest point of the circle is at the latitude nearest a pole
        widest_lat = max(abs(min_lat), abs(max_lat))
        dlng = radius_meters / (METERS_PER_DEGREE * math.cos(math.radians(widest_lat)))
        if dlng >= 180.0:
            return cls(min_lat=min_lat, max_lat=max_lat, lng_ranges=((-180.0, 180.0),))

        min_lng = longitude - dlng
        max_lng = longitude + dlng
        ranges: List[Tuple[float, float]]
        if min_lng < -180.0:
            ranges = [(min_lng + 360.0, 180.0), (-180.0, max_lng)]
        elif max_lng > 180.0:
            ranges = [(min_lng, 180.0), (-180.0, max_lng - 360.0)]
        else:
            ranges = [(min_lng, max_lng)]
        return cls(min_lat=min_lat, max_lat=max_lat, lng_ranges=tuple(ranges))
