"""Interfaces and helpers for wind forecast and elevation sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

from routewind.data_sources.open_meteo_client import HourlyWindEntry


class WindForecastSource(Protocol):
    """Anything that can provide an hourly wind series for a location."""

    def fetch_wind_hours(self, latitude: float, longitude: float) -> List[HourlyWindEntry]:
        """Return the chronological hourly wind series for a location."""
        ...


class ElevationSource(Protocol):
    """Anything that can answer terrain elevation queries."""

    def query_elevation(self, latitude: float, longitude: float) -> Optional[float]:
        """Return elevation in metres, or None when terrain data is unavailable."""
        ...

    def query_elevations(
        self, latitudes: Sequence[float], longitudes: Sequence[float]
    ) -> List[Optional[float]]:
        """Return one elevation (or None) per point, in input order."""
        ...


@dataclass
class CallableWindSource(WindForecastSource):
    """Wrap a callable so forecast backends can be swapped (or faked in tests)."""

    wind_hours: Callable[..., List[HourlyWindEntry]]

    def fetch_wind_hours(self, latitude: float, longitude: float) -> List[HourlyWindEntry]:
        """Delegate to the configured hourly-wind callable."""
        return self.wind_hours(latitude, longitude)


@dataclass
class CallableElevationSource(ElevationSource):
    """
    Wrap elevation callables.

    `batch` answers many points per call; without it, batch queries fall back
    to one `elevation` call per point.
    """

    elevation: Callable[..., Optional[float]]
    batch: Optional[Callable[..., List[Optional[float]]]] = None

    def query_elevation(self, latitude: float, longitude: float) -> Optional[float]:
        """Delegate to the configured elevation callable."""
        return self.elevation(latitude, longitude)

    def query_elevations(
        self, latitudes: Sequence[float], longitudes: Sequence[float]
    ) -> List[Optional[float]]:
        if self.batch is not None:
            return list(self.batch(latitudes, longitudes))
        return [self.elevation(lat, lon) for lat, lon in zip(latitudes, longitudes)]


class NullElevationSource(ElevationSource):
    """Terrain that is never loaded: every query is unavailable (wind-only scoring)."""

    def query_elevation(self, latitude: float, longitude: float) -> Optional[float]:
        return None

    def query_elevations(
        self, latitudes: Sequence[float], longitudes: Sequence[float]
    ) -> List[Optional[float]]:
        return [None] * len(latitudes)
