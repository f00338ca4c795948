"""Session manager facade: process-wide services plus per-session controllers."""
from typing import Optional

from routewind.config import settings
from routewind.controller import RouteController
from routewind.data_sources import build_elevation_source, build_wind_source
from routewind.elevation_cache import ElevationCache
from routewind.pool import ConcurrencyLimitedPool
from routewind.scoring import ScoringParams
from routewind.session_store import InMemorySessionStore, SessionStore
from routewind.wind_service import WindFetchService
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="session_manager")

# Built once per process and shared by every session.
WIND_SERVICE = WindFetchService(
    build_wind_source(settings),
    precision=settings.wind_key_precision,
    max_hours=settings.forecast_max_hours,
)
ELEVATION_CACHE = ElevationCache(
    build_elevation_source(settings),
    precision=settings.elevation_key_precision,
)
FETCH_POOL = ConcurrencyLimitedPool(settings.fetch_concurrency, name="routewind-fetch")
SCORING_PARAMS = ScoringParams(
    climb_penalty_k=settings.climb_penalty_k,
    grade_clamp=settings.grade_clamp,
    overlap_offset_meters=settings.overlap_offset_meters,
)

_store: SessionStore = InMemorySessionStore(
    ttl_seconds=settings.session_ttl_seconds,
    max_sessions=settings.max_sessions,
)


def use_in_memory_store_for_tests(ttl_seconds: int = 3600) -> None:
    """Override store for tests to ensure isolation and determinism."""
    global _store
    _store = InMemorySessionStore(ttl_seconds=ttl_seconds)


def new_controller() -> RouteController:
    """Build a controller wired to the shared services."""
    return RouteController(
        WIND_SERVICE,
        ELEVATION_CACHE,
        FETCH_POOL,
        sample_count=settings.route_sample_count,
        arrow_cols=settings.arrow_cols,
        arrow_rows=settings.arrow_rows,
        params=SCORING_PARAMS,
    )


def create_session(controller: Optional[RouteController] = None) -> tuple[str, RouteController]:
    """Store a (new) controller, returning its session id and the controller."""
    controller = controller or new_controller()
    _store.purge_expired()
    sid = _store.create_session(controller)
    logger.debug("Created session", extra={"session_id": sid})
    return sid, controller


def get_session(session_id: str) -> Optional[RouteController]:
    """Fetch a session's controller by ID, refreshing TTL."""
    return _store.get_session(session_id)


def delete_session(session_id: str):
    """Delete a session by ID."""
    return _store.delete_session(session_id)


def clear_sessions():
    """Clear all sessions from the backing store (dev/testing)."""
    return _store.clear()
