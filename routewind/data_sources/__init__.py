"""Data source factories for plugging different wind and elevation backends."""

from .base import (
    CallableElevationSource,
    CallableWindSource,
    ElevationSource,
    NullElevationSource,
    WindForecastSource,
)
from .factory import build_elevation_source, build_wind_source
from .open_meteo_client import HourlyWindEntry, fetch_elevation, fetch_elevations, fetch_wind_hours

__all__ = [
    "build_wind_source",
    "build_elevation_source",
    "WindForecastSource",
    "ElevationSource",
    "CallableWindSource",
    "CallableElevationSource",
    "NullElevationSource",
    "HourlyWindEntry",
    "fetch_wind_hours",
    "fetch_elevation",
    "fetch_elevations",
]
