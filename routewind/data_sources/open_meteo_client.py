"""Helpers for fetching hourly wind and point elevation from the Open-Meteo APIs."""
from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence
from zoneinfo import ZoneInfo

import requests
from retry_requests import retry

from routewind.config import settings
from utils.logging_utils import get_tagged_logger, mask_url_secrets
logger = get_tagged_logger(__name__, tag='open_meteo_client')

# Transport-level retries only; responses are cached by the services above.
session = retry(
    requests.Session(),
    retries=settings.request_retries,
    backoff_factor=settings.retry_backoff_factor,
)

# Coordinates per /v1/elevation request accepted by Open-Meteo.
ELEVATION_BATCH_SIZE = 100

HOURLY_WIND_VARS = ["wind_speed_10m", "wind_direction_10m"]

EXPECTED_WIND_UNITS = {
    "wind_speed_10m": "km/h",
    "wind_direction_10m": "°",
}

# Acceptable alternative spellings that should not trigger warnings.
ALLOWED_WIND_UNIT_SYNONYMS = {
    "wind_speed_10m": {"km/h", "kmh", "kph"},
    "wind_direction_10m": {"°", "deg", "degrees"},
}


@dataclass(frozen=True)
class HourlyWindEntry:
    """One forecast hour of 10 m wind at a location."""
    time: dt.datetime  # timezone-aware, hour granularity
    speed_kmh: float  # one decimal
    direction_deg: int  # meteorological "from" direction


def _iso_to_dt_with_tz(s: str, tz_name: str | None, utc_offset_seconds: int | None = None) -> dt.datetime:
    """Interpret an Open-Meteo local time string as being in tz_name."""
    naive = dt.datetime.fromisoformat(s)
    if tz_name:
        try:
            return naive.replace(tzinfo=ZoneInfo(tz_name))
        except (KeyError, ValueError):
            logger.debug("Unknown timezone name; falling back to utc offset", extra={"tz_name": tz_name})
    offset = dt.timedelta(seconds=utc_offset_seconds or 0)
    return naive.replace(tzinfo=dt.timezone(offset))


def _warn_on_unexpected_units(units: dict, *, context: str):
    """Log a warning if Open-Meteo returns units we did not request/expect."""
    if not units:
        return
    for field, expected in EXPECTED_WIND_UNITS.items():
        actual = units.get(field)
        if actual and actual != expected and actual not in ALLOWED_WIND_UNIT_SYNONYMS.get(field, set()):
            logger.warning(
                "Unexpected Open-Meteo unit",
                extra={"context": context, "field": field, "unit": actual, "expected": expected},
            )


def _get(url: str, params: dict, timeout: float) -> dict:
    """Issue a GET against Open-Meteo and return the decoded JSON body."""
    if settings.open_meteo_api_key:
        params = {**params, "apikey": settings.open_meteo_api_key}
    resp = session.get(url, params=params, timeout=timeout)
    logger.debug(f"GET {mask_url_secrets(getattr(resp, 'url', url) or url)}")
    resp.raise_for_status()
    return resp.json()


def fetch_wind_hours(
    latitude: float,
    longitude: float,
    *,
    forecast_days: int | None = None,
    timeout: float | None = None,
) -> List[HourlyWindEntry]:
    """
    Fetch roughly `forecast_days` of hourly 10 m wind for one location.

    Speeds are requested in km/h and rounded to one decimal, directions to whole
    degrees. Timestamps are localized with the timezone Open-Meteo resolved for
    the point (`timezone=auto`). Hours with missing values are skipped.
    """
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "hourly": ",".join(HOURLY_WIND_VARS),
        "forecast_days": forecast_days or settings.forecast_days,
        "timezone": "auto",
        "wind_speed_unit": "kmh",
    }

    data = _get(settings.open_meteo_forecast_url, params, timeout or settings.request_timeout_seconds)

    hourly = data["hourly"]
    _warn_on_unexpected_units(data.get("hourly_units", {}), context="wind_hourly")
    tz_name = data.get("timezone")
    utc_offset = data.get("utc_offset_seconds")
    times = hourly["time"]
    speeds = hourly.get("wind_speed_10m", [None] * len(times))
    dirs = hourly.get("wind_direction_10m", [None] * len(times))

    out: List[HourlyWindEntry] = []
    for i, t in enumerate(times):
        if speeds[i] is None or dirs[i] is None:
            continue
        out.append(
            HourlyWindEntry(
                time=_iso_to_dt_with_tz(t, tz_name, utc_offset),
                speed_kmh=round(float(speeds[i]), 1),
                direction_deg=int(round(float(dirs[i]))),
            )
        )
    return out


def _elevation_value(raw) -> Optional[float]:
    if raw is None:
        return None
    value = float(raw)
    return None if math.isnan(value) else value


def fetch_elevations(
    latitudes: Sequence[float],
    longitudes: Sequence[float],
    *,
    timeout: float | None = None,
) -> List[Optional[float]]:
    """
    Return terrain elevation in metres for many points, in input order.

    Points are sent ELEVATION_BATCH_SIZE at a time as comma-separated lists.
    Values Open-Meteo leaves out (or returns as NaN) come back as None.
    """
    if len(latitudes) != len(longitudes):
        raise ValueError("latitudes and longitudes must have the same length")

    out: List[Optional[float]] = []
    for start in range(0, len(latitudes), ELEVATION_BATCH_SIZE):
        lats = latitudes[start:start + ELEVATION_BATCH_SIZE]
        lons = longitudes[start:start + ELEVATION_BATCH_SIZE]
        params = {
            "latitude": ",".join(str(v) for v in lats),
            "longitude": ",".join(str(v) for v in lons),
        }
        data = _get(settings.open_meteo_elevation_url, params, timeout or settings.request_timeout_seconds)
        values = list(data.get("elevation") or [])[: len(lats)]
        values += [None] * (len(lats) - len(values))
        out.extend(_elevation_value(v) for v in values)

    logger.debug("Fetched elevations", extra={"points": len(out)})
    return out


def fetch_elevation(
    latitude: float,
    longitude: float,
    *,
    timeout: float | None = None,
) -> Optional[float]:
    """Return terrain elevation in metres for one point, or None if unavailable."""
    return fetch_elevations([latitude], [longitude], timeout=timeout)[0]
