"""Process-wide wind forecast cache with single-flight request deduplication.

One WindFetchService is built per process and shared by every caller. Results
are keyed by the coordinate rounded to `precision` decimals, so near-identical
queries share a cache entry. While a key is being fetched, further callers for
that key wait on the same in-flight record instead of issuing a new request.
"""

from __future__ import annotations

import datetime as dt
import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from routewind.data_sources.base import WindForecastSource
from routewind.data_sources.open_meteo_client import HourlyWindEntry
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="wind_service")

DEFAULT_KEY_PRECISION = 4
DEFAULT_MAX_HOURS = 24


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class _InFlight:
    """A pending fetch that every caller for the same key waits on."""

    def __init__(self) -> None:
        self._done = threading.Event()
        self.result: Optional[Tuple[HourlyWindEntry, ...]] = None
        self.error: Optional[BaseException] = None

    def resolve(self, result: Tuple[HourlyWindEntry, ...]) -> None:
        self.result = result
        self._done.set()

    def reject(self, error: BaseException) -> None:
        self.error = error
        self._done.set()

    def wait(self) -> Tuple[HourlyWindEntry, ...]:
        self._done.wait()
        if self.error is not None:
            raise self.error
        return self.result or ()


class WindFetchService:
    """Cache + in-flight map over a WindForecastSource."""

    def __init__(
        self,
        source: WindForecastSource,
        *,
        precision: int = DEFAULT_KEY_PRECISION,
        max_hours: int = DEFAULT_MAX_HOURS,
        clock: Callable[[], dt.datetime] = _utc_now,
    ) -> None:
        self._source = source
        self._precision = precision
        self._max_hours = max_hours
        self._clock = clock
        self._cache: Dict[str, Tuple[HourlyWindEntry, ...]] = {}
        self._inflight: Dict[str, _InFlight] = {}
        self._lock = threading.Lock()

    def cache_key(self, latitude: float, longitude: float) -> str:
        """Return the cache key for a coordinate (rounded lat,lon string)."""
        p = self._precision
        return f"{latitude:.{p}f},{longitude:.{p}f}"

    def cached(self, latitude: float, longitude: float) -> Optional[List[HourlyWindEntry]]:
        """Return the cached series for a coordinate without fetching, or None."""
        with self._lock:
            entries = self._cache.get(self.cache_key(latitude, longitude))
        return list(entries) if entries is not None else None

    def cached_many(self, points: Sequence[Tuple[float, float]]) -> List[Optional[List[HourlyWindEntry]]]:
        """Snapshot the cache for `(lat, lon)` points, None for misses."""
        return [self.cached(lat, lon) for lat, lon in points]

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def _trim(self, entries: Sequence[HourlyWindEntry]) -> Tuple[HourlyWindEntry, ...]:
        """Keep future hours only, capped at `max_hours`."""
        now = self._clock()
        future = [e for e in entries if e.time >= now]
        return tuple(future[: self._max_hours])

    def fetch(self, latitude: float, longitude: float) -> List[HourlyWindEntry]:
        """
        Return the hourly wind series for a coordinate, fetching on first use.

        Concurrent callers for the same key share one upstream request. A failed
        request is re-raised to every waiter and leaves the key uncached, so the
        next call retries.
        """
        key = self.cache_key(latitude, longitude)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                return list(cached)
            pending = self._inflight.get(key)
            owner = pending is None
            if owner:
                pending = _InFlight()
                self._inflight[key] = pending

        if not owner:
            logger.debug("Joining in-flight wind fetch", extra={"key": key})
            return list(pending.wait())

        logger.debug("Fetching wind forecast", extra={"key": key})
        try:
            entries = self._trim(self._source.fetch_wind_hours(latitude, longitude))
        except BaseException as exc:
            # waiters must never be left blocked, whatever interrupted the owner
            with self._lock:
                self._inflight.pop(key, None)
            pending.reject(exc)
            logger.warning("Wind forecast fetch failed", extra={"key": key, "error": str(exc)})
            raise

        with self._lock:
            self._cache[key] = entries
            self._inflight.pop(key, None)
        pending.resolve(entries)
        logger.debug("Cached wind forecast", extra={"key": key, "hours": len(entries)})
        return list(entries)
