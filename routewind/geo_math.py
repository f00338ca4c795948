"""Bearing, distance, and small-offset helpers on WGS84 coordinates.

Coordinates are `(longitude, latitude)` pairs in degrees, the same order GeoJSON
uses. All functions are pure; NaN inputs propagate to NaN outputs.
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

EARTH_RADIUS_M = 6_371_000.0
METERS_PER_DEGREE_LAT = 111_111.0

Coordinate = Tuple[float, float]  # (lon, lat)


def bearing(a: Sequence[float], b: Sequence[float]) -> float:
    """Great-circle initial bearing from `a` to `b`, in degrees [0, 360)."""
    lon1, lat1 = a[0], a[1]
    lon2, lat2 = b[0], b[1]
    d_lon = math.radians(lon2 - lon1)
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    y = math.sin(d_lon) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lon)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def angular_difference(a: float, b: float) -> float:
    """Smallest unsigned angle between two bearings, in degrees [0, 180]."""
    d = math.fmod(abs(a - b), 360.0)
    return 360.0 - d if d > 180.0 else d


def haversine_meters(a: Sequence[float], b: Sequence[float]) -> float:
    """Great-circle distance between two coordinates, in metres."""
    lon1, lat1 = a[0], a[1]
    lon2, lat2 = b[0], b[1]
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def offset(point: Sequence[float], bearing_deg: float, distance_m: float) -> Coordinate:
    """
    Displace `point` by `distance_m` perpendicular to `bearing_deg`.

    Positive distances move to the right of the direction of travel
    (bearing + 90 degrees), negative ones to the left. Flat-earth
    approximation: only meaningful for offsets of tens of metres.
    """
    lon, lat = point[0], point[1]
    perp = math.radians(bearing_deg + 90.0)
    dy = distance_m * math.cos(perp)  # metres north
    dx = distance_m * math.sin(perp)  # metres east
    lat_offset = dy / METERS_PER_DEGREE_LAT
    lon_offset = dx / (METERS_PER_DEGREE_LAT * math.cos(math.radians(lat)))
    return lon + lon_offset, lat + lat_offset


def headwind_component(travel_bearing: float, wind_from_deg: float, wind_speed: float) -> float:
    """
    Signed wind component along the direction of travel.

    `wind_from_deg` uses the meteorological convention (0 = wind from the
    north). Positive results oppose travel (headwind), negative ones push
    (tailwind).
    """
    theta = angular_difference(travel_bearing, wind_from_deg)
    # cos(theta) written as sin(90 - theta): exact at 0, 90 and 180 degrees
    return wind_speed * math.sin(math.radians(90.0 - theta))


def midpoint(a: Sequence[float], b: Sequence[float]) -> Coordinate:
    """Arithmetic midpoint of two coordinates (adequate at segment scale)."""
    return (a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0
