"""Coordinate-keyed memo over an elevation source.

Elevation does not change with the forecast hour, so a route is sampled once
per load and re-used while the hour slider moves. Unavailable terrain (source
returns None) resolves to 0 m, which makes every grade 0 and degrades scoring
gracefully to wind-only.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Sequence, Tuple

from routewind.data_sources.base import ElevationSource
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="elevation_cache")

DEFAULT_KEY_PRECISION = 5


class ElevationCache:
    """Process-wide, append-only elevation memo."""

    def __init__(self, source: ElevationSource, *, precision: int = DEFAULT_KEY_PRECISION) -> None:
        self._source = source
        self._precision = precision
        self._cache: Dict[str, float] = {}
        self._lock = threading.Lock()

    def cache_key(self, latitude: float, longitude: float) -> str:
        """Return the cache key for a coordinate (rounded lat,lon string)."""
        p = self._precision
        return f"{latitude:.{p}f},{longitude:.{p}f}"

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def elevation_at(self, latitude: float, longitude: float) -> float:
        """Return the (possibly cached) elevation for one point."""
        key = self.cache_key(latitude, longitude)
        with self._lock:
            if key in self._cache:
                return self._cache[key]

        value = self._source.query_elevation(latitude, longitude)
        elevation = float(value) if value is not None else 0.0

        with self._lock:
            # first writer wins; entries are never replaced
            return self._cache.setdefault(key, elevation)

    def sample(self, route: Sequence[Sequence[float]]) -> List[float]:
        """
        Return one elevation (m) per `[lon, lat]` route point.

        Uncached keys are collected and resolved with a single batched source
        query, so a long route costs a handful of upstream requests.
        """
        keys = [self.cache_key(point[1], point[0]) for point in route]
        missing: Dict[str, Tuple[float, float]] = {}
        with self._lock:
            for key, point in zip(keys, route):
                if key not in self._cache and key not in missing:
                    missing[key] = (point[1], point[0])

        if missing:
            lats = [lat for lat, _ in missing.values()]
            lons = [lon for _, lon in missing.values()]
            values = list(self._source.query_elevations(lats, lons))
            values += [None] * (len(lats) - len(values))
            with self._lock:
                for key, value in zip(missing, values):
                    # first writer wins; entries are never replaced
                    self._cache.setdefault(key, float(value) if value is not None else 0.0)

        logger.debug("Sampled route elevations", extra={"points": len(route), "new_keys": len(missing)})
        with self._lock:
            return [self._cache[key] for key in keys]
