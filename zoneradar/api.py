"""HTTP API for zone viability scores."""

import threading
from datetime import datetime, timezone as dt_timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from .config import settings
from .domain import Coordinates, NearbyZonesMeta, NearbyZonesResponse, ZoneScore
from .grid import InvalidCoordinateError
from .streaming import (
    NDJSON_MEDIA_TYPE,
    NearbyZonesStreamer,
    ZoneStreamError,
    ZoneStreamTimeout,
    ndjson_lines,
)
from .zone_service import ZoneScoringService, build_zone_service
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="zoneradar/api")

router = APIRouter()

_service: Optional[ZoneScoringService] = None
_service_lock = threading.Lock()


def get_zone_service() -> ZoneScoringService:
    """Process-wide scoring service, built on first use."""
    global _service
    with _service_lock:
        if _service is None:
            _service = build_zone_service(settings)
        return _service


def get_streamer(service: ZoneScoringService = Depends(get_zone_service)) -> NearbyZonesStreamer:
    """Streamer configured from settings around the shared service."""
    return NearbyZonesStreamer(
        service,
        max_workers=settings.stream_max_workers,
        queue_size=settings.stream_queue_size,
        timeout_seconds=settings.nearby_timeout_seconds,
        grid_radius=settings.candidate_grid_radius,
        step_degrees=settings.candidate_step_degrees,
    )


def _require_timezone(tz_str: str) -> str:
    """Reject unknown IANA timezone names with a 400."""
    try:
        ZoneInfo(tz_str)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid timezone: {tz_str}")
    return tz_str


def _bad_coordinates(exc: InvalidCoordinateError) -> HTTPException:
    logger.debug("Rejected coordinates: %s", exc)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/zones/nearby", response_model=NearbyZonesResponse)
def nearby_zones(
    lat: float,
    lng: float,
    timezone: str = "UTC",
    streamer: NearbyZonesStreamer = Depends(get_streamer),
):
    """Score every candidate around (lat, lng) and return them in grid order."""
    tz_str = _require_timezone(timezone)
    now = datetime.now(tz=dt_timezone.utc)
    logger.info(f"Nearby zones for ({lat}, {lng}) in {tz_str}")

    try:
        zones = streamer.collect(lat, lng, tz_str, now)
    except InvalidCoordinateError as exc:
        raise _bad_coordinates(exc)
    except ZoneStreamTimeout as exc:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc))
    except ZoneStreamError as exc:
        logger.error("Nearby zones failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to score nearby zones")

    return NearbyZonesResponse(
        zones=zones,
        meta=NearbyZonesMeta(
            center=Coordinates(lat=lat, lng=lng),
            total_zones=len(zones),
            calculated_at=now,
            timezone=tz_str,
        ),
    )


@router.get("/zones/stream")
def stream_zones(
    lat: float,
    lng: float,
    timezone: str = "UTC",
    streamer: NearbyZonesStreamer = Depends(get_streamer),
):
    """Stream nearby zones as newline-delimited JSON while they are scored."""
    tz_str = _require_timezone(timezone)
    try:
        messages = streamer.stream(lat, lng, tz_str)
    except InvalidCoordinateError as exc:
        raise _bad_coordinates(exc)

    logger.info(f"Streaming nearby zones for ({lat}, {lng}) in {tz_str}")
    return StreamingResponse(
        ndjson_lines(messages),
        media_type=NDJSON_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/zones/score", response_model=ZoneScore)
def zone_score(
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    timezone: str = "UTC",
    service: ZoneScoringService = Depends(get_zone_service),
):
    """Score one point; without lat/lng only time-of-day factors are used."""
    tz_str = _require_timezone(timezone)
    if lat is None and lng is None:
        return service.score_basic(tz_str)
    if lat is None or lng is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="lat and lng must be given together")

    try:
        return service.score_zone(lat, lng, tz_str)
    except InvalidCoordinateError as exc:
        raise _bad_coordinates(exc)
