"""Factory helpers for choosing wind and elevation backends at startup."""

from __future__ import annotations

from routewind import config
from routewind.data_sources.base import (
    CallableElevationSource,
    CallableWindSource,
    ElevationSource,
    NullElevationSource,
    WindForecastSource,
)
from routewind.data_sources.open_meteo_client import fetch_elevation, fetch_elevations, fetch_wind_hours
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


DEFAULT_SOURCE_NAME = "open_meteo"


def build_wind_source(settings: config.Settings | None = None) -> WindForecastSource:
    """Instantiate the configured wind forecast source."""
    settings = settings or config.settings
    source = (settings.forecast_source or DEFAULT_SOURCE_NAME).lower()

    if source == "open_meteo":
        logger.info("Using Open-Meteo wind forecast source")
        return CallableWindSource(wind_hours=fetch_wind_hours)

    raise ValueError(f"Unknown forecast source '{source}'")


def build_elevation_source(settings: config.Settings | None = None) -> ElevationSource:
    """Instantiate the configured elevation source."""
    settings = settings or config.settings
    source = (settings.elevation_source or DEFAULT_SOURCE_NAME).lower()

    if source == "open_meteo":
        logger.info("Using Open-Meteo elevation source")
        return CallableElevationSource(elevation=fetch_elevation, batch=fetch_elevations)

    if source == "none":
        logger.info("Elevation disabled; scoring will be wind-only")
        return NullElevationSource()

    raise ValueError(f"Unknown elevation source '{source}'")
