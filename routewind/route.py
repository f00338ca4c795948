"""Route helpers: wind sample selection, bounds, and GPX import."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence

import gpxpy
import gpxpy.gpx

from routewind.grid import Bounds
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="route")

DEFAULT_SAMPLE_COUNT = 10


class GpxParseError(ValueError):
    """Raised when GPX text cannot be turned into a usable route."""


@dataclass(frozen=True)
class SamplePoint:
    """Wind-query anchor picked from the route."""
    lat: float
    lon: float


def sample_route_points(route: Sequence[Sequence[float]], n: int = DEFAULT_SAMPLE_COUNT) -> List[SamplePoint]:
    """
    Pick `n` evenly spaced route points (by index) for wind sampling.

    Endpoints are always included when n > 1. Short routes repeat points rather
    than returning fewer than `n`.
    """
    if not route or n < 1:
        return []
    last = len(route) - 1
    out: List[SamplePoint] = []
    for i in range(n):
        # round half up, matching the index layout clients already rely on
        idx = int(math.floor(i / max(n - 1, 1) * last + 0.5))
        lon, lat = route[min(idx, last)][:2]
        out.append(SamplePoint(lat=lat, lon=lon))
    return out


def route_bounds(route: Sequence[Sequence[float]]) -> Bounds | None:
    """Bounding box of a route (used to zoom the map to it), or None if empty."""
    if not route:
        return None
    lons = [p[0] for p in route]
    lats = [p[1] for p in route]
    return Bounds(west=min(lons), south=min(lats), east=max(lons), north=max(lats))


def parse_gpx(text: str) -> List[List[float]]:
    """
    Parse GPX text into a `[lon, lat]` coordinate list.

    Track points win over route points. When the file holds several tracks,
    the one with the most points is used. Points with non-finite coordinates
    are dropped.
    """
    try:
        gpx = gpxpy.parse(text)
    except gpxpy.gpx.GPXException as exc:
        raise GpxParseError(f"Invalid GPX: {exc}") from exc

    tracks = [
        [pt for segment in track.segments for pt in segment.points]
        for track in gpx.tracks
    ]
    tracks = [t for t in tracks if t]
    if tracks:
        chosen = max(tracks, key=len)
    else:
        chosen = [pt for rte in gpx.routes for pt in rte.points]

    if not chosen:
        raise GpxParseError("No track or route points found in GPX")

    coords = [
        [float(pt.longitude), float(pt.latitude)]
        for pt in chosen
        if pt.longitude is not None and pt.latitude is not None
        and math.isfinite(pt.longitude) and math.isfinite(pt.latitude)
    ]
    if len(coords) < 2:
        raise GpxParseError("GPX track has fewer than 2 valid points")

    logger.info("Parsed GPX route", extra={"points": len(coords), "tracks": len(tracks)})
    return coords
