"""Per-segment "suffer" scoring of a route against wind and terrain.

For every consecutive pair of route points the scorer picks the nearest wind
sample, measures the headwind component along the direction of travel, adds a
climb penalty from the elevation grade, and finally normalizes the raw scores
to 0..1 across the route:

    suffer_raw = max(0, headwind_kmh) + K * max(0, grade)

With K = 80 a 10% grade weighs like an 8 km/h headwind, so steep climbs stand
out on calm days while strong headwinds still dominate flat terrain. Grade is
clamped to +/-20% and descents never lower the score.

Segments reused by an out-and-back route are offset sideways so the two
traversals render as parallel lines instead of one on top of the other.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from routewind.data_sources.open_meteo_client import HourlyWindEntry
from routewind.geo_math import bearing, haversine_meters, headwind_component, midpoint, offset
from routewind.route import SamplePoint
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="scoring")

NORMALIZE_EPSILON = 1e-6
MIN_SEGMENT_METERS = 0.1
EDGE_KEY_PRECISION = 5


@dataclass(frozen=True)
class ScoringParams:
    """Tunable constants of the scoring model."""
    climb_penalty_k: float = 80.0
    grade_clamp: float = 0.2
    overlap_offset_meters: float = 5.0


DEFAULT_PARAMS = ScoringParams()


@dataclass
class SegmentStats:
    """Score breakdown for one route segment."""
    headwind_raw: float
    grade: float
    climb_penalty: float
    suffer_raw: float
    normalized_score: float = 0.0


@dataclass
class ScoredSegment:
    """A two-point line plus its score breakdown."""
    coordinates: Tuple[Tuple[float, float], Tuple[float, float]]
    stats: SegmentStats

    def to_feature(self) -> Dict[str, Any]:
        """Render as a GeoJSON LineString feature."""
        s = self.stats
        return {
            "type": "Feature",
            "properties": {
                "score": s.normalized_score,
                "headwind_raw": s.headwind_raw,
                "grade": s.grade,
                "climb_penalty": s.climb_penalty,
                "suffer_raw": s.suffer_raw,
                "normalized_score": s.normalized_score,
            },
            "geometry": {
                "type": "LineString",
                "coordinates": [list(c) for c in self.coordinates],
            },
        }


@dataclass
class ScoredSegmentCollection:
    """Ordered scored segments of one route."""
    segments: List[ScoredSegment]

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self):
        return iter(self.segments)

    def __getitem__(self, idx: int) -> ScoredSegment:
        return self.segments[idx]

    def to_geojson(self) -> Dict[str, Any]:
        """Render as a GeoJSON FeatureCollection for the map layer."""
        return {"type": "FeatureCollection", "features": [s.to_feature() for s in self.segments]}


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def edge_key(a: Sequence[float], b: Sequence[float], precision: int = EDGE_KEY_PRECISION) -> str:
    """Direction-agnostic key for the edge between two `[lon, lat]` points."""
    k1 = f"{a[1]:.{precision}f},{a[0]:.{precision}f}"
    k2 = f"{b[1]:.{precision}f},{b[0]:.{precision}f}"
    return f"{k1}|{k2}" if k1 < k2 else f"{k2}|{k1}"


def nearest_sample_index(mid_lat: float, mid_lon: float, samples: Sequence[SamplePoint]) -> int:
    """
    Index of the sample closest to a point by squared lat/lon distance.

    Not a geodesic nearest neighbour; fine at route scale, skewed near the
    poles and across very wide longitude spans.
    """
    best = 0
    best_d = float("inf")
    for i, s in enumerate(samples):
        d = (s.lat - mid_lat) ** 2 + (s.lon - mid_lon) ** 2
        if d < best_d:
            best_d = d
            best = i
    return best


def _wind_entry(
    wind_series: Sequence[Optional[Sequence[HourlyWindEntry]]],
    sample_idx: int,
    hour_index: int,
) -> Optional[HourlyWindEntry]:
    """Entry for a sample/hour, or None when the data is missing."""
    if sample_idx >= len(wind_series) or hour_index < 0:
        return None
    series = wind_series[sample_idx]
    if not series or hour_index >= len(series):
        return None
    return series[hour_index]


def score_route(
    route: Sequence[Sequence[float]],
    sample_points: Sequence[SamplePoint],
    wind_series: Sequence[Optional[Sequence[HourlyWindEntry]]],
    hour_index: int,
    elevations: Sequence[float],
    include_elevation: bool,
    *,
    params: ScoringParams = DEFAULT_PARAMS,
) -> ScoredSegmentCollection:
    """
    Score every segment of `route` for the given forecast hour.

    Parameters
    ----------
    route:
        `[lon, lat]` points; fewer than two gives an empty collection.
    sample_points:
        Wind anchors; `wind_series[i]` is the hourly series of `sample_points[i]`
        (None while it is still being fetched).
    hour_index:
        Index into each series. Missing data counts as zero wind.
    elevations:
        One value (m) per route point. Ignored unless `include_elevation` is set
        and the lengths match.
    """
    if len(route) < 2:
        return ScoredSegmentCollection(segments=[])

    has_elevation = include_elevation and len(elevations) == len(route)

    edge_counts: Dict[str, int] = {}
    for i in range(len(route) - 1):
        key = edge_key(route[i], route[i + 1])
        edge_counts[key] = edge_counts.get(key, 0) + 1

    # bearing of the first traversal of each repeated edge; later traversals
    # offset to the opposite side of it
    first_bearing: Dict[str, float] = {}

    segments: List[ScoredSegment] = []
    for i in range(len(route) - 1):
        a = (route[i][0], route[i][1])
        b = (route[i + 1][0], route[i + 1][1])
        mid_lon, mid_lat = midpoint(a, b)
        travel = bearing(a, b)

        entry = None
        if sample_points:
            entry = _wind_entry(wind_series, nearest_sample_index(mid_lat, mid_lon, sample_points), hour_index)
        headwind = headwind_component(travel, entry.direction_deg, entry.speed_kmh) if entry else 0.0
        headwind_raw = max(0.0, headwind)

        grade = 0.0
        climb_penalty = 0.0
        if has_elevation:
            distance = haversine_meters(a, b)
            if distance > MIN_SEGMENT_METERS:
                grade = _clamp((elevations[i + 1] - elevations[i]) / distance,
                               -params.grade_clamp, params.grade_clamp)
                if grade > 0:
                    climb_penalty = params.climb_penalty_k * grade

        coords = (a, b)
        key = edge_key(a, b)
        if edge_counts[key] > 1:
            if key not in first_bearing:
                first_bearing[key] = travel
                sign = 1.0
            else:
                sign = -1.0
            side = sign * params.overlap_offset_meters
            coords = (offset(a, first_bearing[key], side), offset(b, first_bearing[key], side))

        segments.append(
            ScoredSegment(
                coordinates=coords,
                stats=SegmentStats(
                    headwind_raw=headwind_raw,
                    grade=grade,
                    climb_penalty=climb_penalty,
                    suffer_raw=headwind_raw + climb_penalty,
                ),
            )
        )

    max_raw = max([s.stats.suffer_raw for s in segments] + [NORMALIZE_EPSILON])
    for s in segments:
        s.stats.normalized_score = s.stats.suffer_raw / max_raw

    logger.debug(
        "Scored route",
        extra={"segments": len(segments), "hour_index": hour_index, "elevation": has_elevation},
    )
    return ScoredSegmentCollection(segments=segments)
