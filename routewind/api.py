"""HTTP API serving scored route segments and wind arrows to the map client."""

import hmac
from datetime import datetime
from typing import Any, Optional

import requests
from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, Field, model_validator

from .config import settings
from .controller import RouteController
from .grid import Bounds
from .route import GpxParseError, parse_gpx
from .session_manager import WIND_SERVICE, create_session, get_session, new_controller
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api")


def require_api_key(x_api_key: str | None = Header(default=None)):
    """Validate the X-API-Key header against the configured static key, if any."""
    if not settings.api_key:
        return

    if not x_api_key:
        logger.debug("No API key provided")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    if hmac.compare_digest(str(x_api_key), str(settings.api_key)):
        return

    logger.debug("Invalid API key provided")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


router = APIRouter(dependencies=[Depends(require_api_key)])


class StartRequest(BaseModel):
    """Session bootstrap payload."""
    coordinates: list[list[float]] = Field(default_factory=list)
    include_elevation: bool = True
    hour_index: int = Field(default=0, ge=0)


class RouteRequest(BaseModel):
    """Replacement route as [longitude, latitude] pairs."""
    coordinates: list[list[float]]


class GpxRequest(BaseModel):
    """Replacement route as raw GPX text."""
    gpx: str


class HourRequest(BaseModel):
    """Forecast hour selected on the slider."""
    hour_index: int = Field(ge=0)


class ElevationRequest(BaseModel):
    """Climb-penalty toggle."""
    enabled: bool


class ViewportRequest(BaseModel):
    """Visible map bounds in degrees."""
    west: float = Field(ge=-180, le=180)
    south: float = Field(ge=-90, le=90)
    east: float = Field(ge=-180, le=180)
    north: float = Field(ge=-90, le=90)

    @model_validator(mode="after")
    def check_latitudes(self) -> "ViewportRequest":
        """West may exceed east (antimeridian); south may not exceed north."""
        if self.south > self.north:
            raise ValueError("south must not be greater than north")
        return self


class SegmentsResponse(BaseModel):
    """Scored route segments plus the state that produced them."""
    session_id: str
    hour_index: int
    include_elevation: bool
    hours: list[datetime] = Field(default_factory=list)
    bounds: Optional[list[float]] = None  # [west, south, east, north]
    segments: dict[str, Any]
    arrows: Optional[dict[str, Any]] = None


class ArrowsResponse(BaseModel):
    """Wind arrow features for the current viewport grid."""
    session_id: str
    hour_index: int
    arrows: dict[str, Any]


class WindHour(BaseModel):
    """One forecast hour at a point."""
    time: datetime
    speed_kmh: float
    direction_deg: int


class WindResponse(BaseModel):
    """Hourly wind series at a point."""
    latitude: float
    longitude: float
    hours: list[WindHour]


def _load_session(session_id: str) -> RouteController:
    """Return the session's controller or raise 404."""
    controller = get_session(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Unknown session ID")
    return controller


def _segments_response(session_id: str, controller: RouteController, segments=None, arrows=None) -> SegmentsResponse:
    """Serialize the controller's current segments."""
    segments = segments if segments is not None else controller.segments()
    bounds = controller.bounds()
    return SegmentsResponse(
        session_id=session_id,
        hour_index=controller.hour_index,
        include_elevation=controller.include_elevation,
        hours=controller.hours(),
        bounds=[bounds.west, bounds.south, bounds.east, bounds.north] if bounds else None,
        segments=segments.to_geojson(),
        arrows=arrows,
    )


def _set_route(controller: RouteController, coordinates: list[list[float]]):
    """Apply a route, mapping malformed input to a 400."""
    try:
        return controller.set_route(coordinates)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/wind", response_model=WindResponse)
def get_wind(lat: float = Query(ge=-90, le=90), lon: float = Query(ge=-180, le=180)):
    """Return the cached (or freshly fetched) hourly wind series for a point."""
    try:
        entries = WIND_SERVICE.fetch(lat, lon)
    except requests.RequestException as exc:
        logger.warning("Wind lookup failed", extra={"lat": lat, "lon": lon, "error": str(exc)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Wind forecast unavailable")
    return WindResponse(
        latitude=lat,
        longitude=lon,
        hours=[WindHour(time=e.time, speed_kmh=e.speed_kmh, direction_deg=e.direction_deg) for e in entries],
    )


@router.post("/session/start", response_model=SegmentsResponse)
def start_session(req: StartRequest):
    """Create a session, load data for the optional route, and return its segments."""
    controller = new_controller()
    controller.include_elevation = req.include_elevation
    controller.hour_index = req.hour_index
    segments = _set_route(controller, req.coordinates) if req.coordinates else None
    session_id, _ = create_session(controller)
    logger.info("Started session", extra={"session_id": session_id, "points": len(req.coordinates)})
    return _segments_response(session_id, controller, segments)


@router.post("/session/{session_id}/route", response_model=SegmentsResponse)
def set_route(session_id: str, req: RouteRequest):
    """Replace the session's route."""
    controller = _load_session(session_id)
    segments = _set_route(controller, req.coordinates)
    return _segments_response(session_id, controller, segments)


@router.post("/session/{session_id}/gpx", response_model=SegmentsResponse)
def upload_gpx(session_id: str, req: GpxRequest):
    """Replace the session's route from GPX text."""
    controller = _load_session(session_id)
    try:
        coordinates = parse_gpx(req.gpx)
    except GpxParseError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    segments = _set_route(controller, coordinates)
    return _segments_response(session_id, controller, segments)


@router.post("/session/{session_id}/hour", response_model=SegmentsResponse)
def set_hour(session_id: str, req: HourRequest):
    """Select the forecast hour (no network: cached data only); arrows follow the hour."""
    controller = _load_session(session_id)
    segments = controller.set_hour(req.hour_index)
    return _segments_response(session_id, controller, segments, arrows=controller.arrows())


@router.post("/session/{session_id}/elevation", response_model=SegmentsResponse)
def set_elevation(session_id: str, req: ElevationRequest):
    """Toggle the climb penalty."""
    controller = _load_session(session_id)
    segments = controller.set_include_elevation(req.enabled)
    return _segments_response(session_id, controller, segments)


@router.post("/session/{session_id}/viewport", response_model=ArrowsResponse)
def set_viewport(session_id: str, req: ViewportRequest):
    """Refresh the wind arrow grid for the visible bounds."""
    controller = _load_session(session_id)
    arrows = controller.refresh_arrows(Bounds(west=req.west, south=req.south, east=req.east, north=req.north))
    return ArrowsResponse(session_id=session_id, hour_index=controller.hour_index, arrows=arrows)


@router.get("/session/{session_id}/segments", response_model=SegmentsResponse)
def get_segments(session_id: str):
    """Return the current scored segments."""
    controller = _load_session(session_id)
    return _segments_response(session_id, controller)


@router.get("/session/{session_id}/arrows", response_model=ArrowsResponse)
def get_arrows(session_id: str):
    """Return arrows for the last viewport and current hour."""
    controller = _load_session(session_id)
    return ArrowsResponse(session_id=session_id, hour_index=controller.hour_index, arrows=controller.arrows())
