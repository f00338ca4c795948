"""Owning controller that recomputes the overlays when its inputs change.

The controller holds one user's view state (route, forecast hour, elevation
toggle, current arrow grid) and calls the scoring and arrow code explicitly
after each change. Shared caches and the fetch pool are injected so every
controller in the process reuses the same wind and elevation data.
"""

from __future__ import annotations

import datetime as dt
import math
import threading
from typing import Any, Dict, List, Optional, Sequence

import requests

from routewind.arrows import project_arrows
from routewind.elevation_cache import ElevationCache
from routewind.grid import Bounds, GridPoint, build_grid
from routewind.pool import ConcurrencyLimitedPool
from routewind.route import DEFAULT_SAMPLE_COUNT, SamplePoint, route_bounds, sample_route_points
from routewind.scoring import DEFAULT_PARAMS, ScoredSegmentCollection, ScoringParams, score_route
from routewind.wind_service import WindFetchService
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="controller")


def normalize_route(coordinates: Sequence[Sequence[float]]) -> List[List[float]]:
    """Copy a route as `[lon, lat]` float pairs, rejecting malformed points."""
    out: List[List[float]] = []
    for point in coordinates:
        if len(point) < 2:
            raise ValueError("Route points must be [longitude, latitude] pairs")
        lon, lat = float(point[0]), float(point[1])
        if not (math.isfinite(lon) and math.isfinite(lat)):
            raise ValueError("Route points must be finite numbers")
        out.append([lon, lat])
    return out


class RouteController:
    """View state for one route plus explicit recompute operations."""

    def __init__(
        self,
        wind_service: WindFetchService,
        elevation_cache: ElevationCache,
        pool: ConcurrencyLimitedPool,
        *,
        sample_count: int = DEFAULT_SAMPLE_COUNT,
        arrow_cols: int = 6,
        arrow_rows: int = 4,
        params: ScoringParams = DEFAULT_PARAMS,
    ) -> None:
        self.wind_service = wind_service
        self.elevation_cache = elevation_cache
        self.pool = pool
        self.sample_count = sample_count
        self.arrow_cols = arrow_cols
        self.arrow_rows = arrow_rows
        self.params = params

        self.route: List[List[float]] = []
        self.sample_points: List[SamplePoint] = []
        self.elevations: List[float] = []
        self.hour_index: int = 0
        self.include_elevation: bool = True
        self.grid: List[GridPoint] = []
        self._viewport_generation = 0
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def set_route(self, coordinates: Sequence[Sequence[float]]) -> ScoredSegmentCollection:
        """Replace the route, load its wind and elevation, and rescore."""
        route = normalize_route(coordinates)
        with self._lock:
            self.route = route
            self.sample_points = sample_route_points(route, self.sample_count)
            # elevations belong to the previous route
            self.elevations = []
        logger.info("Route set", extra={"points": len(route), "samples": len(self.sample_points)})
        self.load_wind()
        self.load_elevations()
        return self.segments()

    def set_hour(self, hour_index: int) -> ScoredSegmentCollection:
        """Select the forecast hour used for segments and arrows."""
        if hour_index < 0:
            raise ValueError("hour_index must be >= 0")
        with self._lock:
            self.hour_index = hour_index
        return self.segments()

    def set_include_elevation(self, enabled: bool) -> ScoredSegmentCollection:
        """Toggle the climb penalty."""
        with self._lock:
            self.include_elevation = enabled
        return self.segments()

    # ------------------------------------------------------------------
    # Data loading
    # ------------------------------------------------------------------

    def load_wind(self) -> int:
        """Fetch wind for every sample point through the pool; return failures."""
        points = list(self.sample_points)
        outcomes = self.pool.run(
            [lambda p=p: self.wind_service.fetch(p.lat, p.lon) for p in points]
        )
        failed = sum(1 for o in outcomes if not o.ok)
        if failed:
            logger.warning("Some route wind samples failed; scoring with partial data",
                           extra={"failed": failed, "samples": len(points)})
        return failed

    def load_elevations(self) -> bool:
        """Sample terrain for the current route; False when the lookup failed."""
        route = list(self.route)
        try:
            elevations = self.elevation_cache.sample(route)
        except requests.RequestException as exc:
            logger.warning("Elevation lookup failed; scoring wind-only", extra={"error": str(exc)})
            return False
        with self._lock:
            if route == self.route:
                self.elevations = elevations
        return True

    def refresh_arrows(self, bounds: Bounds) -> Dict[str, Any]:
        """Rebuild the arrow grid for a viewport, fetching missing points."""
        with self._lock:
            self._viewport_generation += 1
            generation = self._viewport_generation
        grid = build_grid(bounds, self.arrow_cols, self.arrow_rows)
        self.pool.run([lambda p=p: self.wind_service.fetch(p.lat, p.lon) for p in grid])
        resolved = [p.with_hourly(self.wind_service.cached(p.lat, p.lon)) for p in grid]

        with self._lock:
            if generation == self._viewport_generation:
                self.grid = resolved
            else:
                logger.debug("Discarding superseded viewport refresh", extra={"generation": generation})
        return self.arrows()

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def wind_snapshot(self) -> List[Optional[list]]:
        """Cached series per sample point (None where not fetched yet)."""
        return self.wind_service.cached_many([(p.lat, p.lon) for p in self.sample_points])

    def segments(self) -> ScoredSegmentCollection:
        """Score the current route from whatever data is cached right now."""
        with self._lock:
            route = list(self.route)
            samples = list(self.sample_points)
            elevations = list(self.elevations)
            hour_index = self.hour_index
            include_elevation = self.include_elevation
        wind = self.wind_service.cached_many([(p.lat, p.lon) for p in samples])
        return score_route(route, samples, wind, hour_index, elevations, include_elevation,
                           params=self.params)

    def arrows(self) -> Dict[str, Any]:
        """Arrow features for the current grid and hour."""
        with self._lock:
            return project_arrows(self.grid, self.hour_index)

    def hours(self) -> List[dt.datetime]:
        """Timestamps for the hour slider, taken from the middle sample when available."""
        snapshot = self.wind_snapshot()
        if not snapshot:
            return []
        mid = len(snapshot) // 2
        for series in [snapshot[mid]] + snapshot:
            if series:
                return [e.time for e in series]
        return []

    def bounds(self) -> Optional[Bounds]:
        """Bounding box of the current route."""
        return route_bounds(self.route)
