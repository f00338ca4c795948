"""Turn a resolved wind grid into arrow point features for the map."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from routewind.grid import GridPoint

MIN_ICON_SIZE = 0.6
MAX_ICON_SIZE = 1.4
ICON_SPEED_SCALE_KMH = 50.0  # speed at which the icon gains +1.0 size


def arrow_rotation(direction_from_deg: float) -> float:
    """
    Icon rotation for a wind "from" direction.

    The arrow icon points up (north) unrotated, so it is turned to the
    direction the wind blows towards: from + 180.
    """
    return (direction_from_deg + 180.0) % 360.0


def arrow_size(speed_kmh: float) -> float:
    """Icon scale growing with wind speed, clamped to a readable range."""
    return max(MIN_ICON_SIZE, min(MAX_ICON_SIZE, MIN_ICON_SIZE + speed_kmh / ICON_SPEED_SCALE_KMH))


def project_arrows(grid_points: Sequence[GridPoint], hour_index: int) -> Dict[str, Any]:
    """
    Build a GeoJSON FeatureCollection of wind arrows for one forecast hour.

    Grid points without data for `hour_index` are left out rather than drawn
    as calm.
    """
    features: List[Dict[str, Any]] = []
    for point in grid_points:
        if hour_index < 0 or hour_index >= len(point.hourly):
            continue
        entry = point.hourly[hour_index]
        features.append(
            {
                "type": "Feature",
                "properties": {
                    "icon_rotate": arrow_rotation(entry.direction_deg),
                    "icon_size": arrow_size(entry.speed_kmh),
                    "speed_kmh": entry.speed_kmh,
                    "direction_deg": entry.direction_deg,
                },
                "geometry": {"type": "Point", "coordinates": [point.lon, point.lat]},
            }
        )
    return {"type": "FeatureCollection", "features": features}
