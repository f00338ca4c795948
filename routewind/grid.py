"""Regular lat/lon sampling grid over a viewport bounding box."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from routewind.data_sources.open_meteo_client import HourlyWindEntry


@dataclass(frozen=True)
class Bounds:
    """Geographic bounding rectangle in degrees."""
    west: float
    south: float
    east: float
    north: float


@dataclass(frozen=True)
class GridPoint:
    """One arrow anchor; `hourly` stays empty until its forecast is resolved."""
    lat: float
    lon: float
    hourly: Tuple[HourlyWindEntry, ...] = field(default=(), compare=False)

    def with_hourly(self, hourly: Optional[List[HourlyWindEntry]]) -> "GridPoint":
        """Return a copy carrying the given series (empty when None)."""
        return replace(self, hourly=tuple(hourly or ()))


def _axis(start: float, end: float, count: int) -> List[float]:
    """`count` evenly spaced values covering [start, end] inclusive."""
    if count == 1:
        return [(start + end) / 2.0]
    step = (end - start) / (count - 1)
    return [start + step * i for i in range(count)]


def _wrap_longitude(lon: float) -> float:
    """Map a longitude into [-180, 180)."""
    return (lon + 180.0) % 360.0 - 180.0


def build_grid(bounds: Bounds, cols: int, rows: int) -> List[GridPoint]:
    """
    Return a `cols x rows` lattice spanning `bounds`, edges included.

    Points are ordered row by row from south to north, west to east within a
    row. A viewport whose west edge lies east of its east edge crosses the
    antimeridian; its columns run eastward across 180 and are wrapped back
    into [-180, 180). Non-positive dimensions give an empty grid.
    """
    if cols < 1 or rows < 1:
        return []
    lats = _axis(bounds.south, bounds.north, rows)
    if bounds.east >= bounds.west:
        lons = _axis(bounds.west, bounds.east, cols)
    else:
        lons = [_wrap_longitude(v) for v in _axis(bounds.west, bounds.east + 360.0, cols)]
    return [GridPoint(lat=lat, lon=lon) for lat in lats for lon in lons]
