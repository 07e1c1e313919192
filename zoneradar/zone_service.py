"""Score a single coordinate by combining weather, events and time of day."""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from typing import Optional

import requests

from zoneradar import config
from zoneradar.data_sources import build_events_provider, build_weather_provider
from zoneradar.domain import ZoneCandidate, ZoneResult, ZoneScore
from zoneradar.events_service import EventsService
from zoneradar.grid import validate_coordinates
from zoneradar.scoring import calculate_score, get_score_label, next_refresh_time
from zoneradar.weather_cache import WeatherGridCache
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="zone_service")


class ZoneScoringService:
    """Owns the shared weather cache and events service for all requests."""

    def __init__(self, weather: WeatherGridCache, events: EventsService) -> None:
        self.weather = weather
        self.events = events

    def score_zone(
        self,
        latitude: float,
        longitude: float,
        timezone: str = "UTC",
        now: Optional[datetime] = None,
    ) -> ZoneScore:
        """Full score for a coordinate, including weather and nearby events."""
        validate_coordinates(latitude, longitude)
        now = now or datetime.now(dt_timezone.utc)

        weather = self.weather.get(latitude, longitude)
        events = self.events.get_event_boost(latitude, longitude, now)
        result = calculate_score(now, timezone, weather_boost=weather.score, event_boost=events.score)

        return ZoneScore(
            score=result.score,
            label=get_score_label(result.score),
            factors=result.factors,
            weather_description=weather.description,
            nearby_events=events.nearby_events,
            calculated_at=now,
            timezone=timezone,
            next_refresh=next_refresh_time(now),
        )

    def score_candidate(
        self,
        candidate: ZoneCandidate,
        timezone: str = "UTC",
        now: Optional[datetime] = None,
    ) -> ZoneResult:
        """score_zone for a candidate, tagged with its coordinates."""
        zone = self.score_zone(candidate.latitude, candidate.longitude, timezone, now)
        return ZoneResult(**dict(zone), latitude=candidate.latitude, longitude=candidate.longitude)

    def score_basic(self, timezone: str = "UTC", now: Optional[datetime] = None) -> ZoneScore:
        """Time-only score with no upstream calls (neutral weather, no events)."""
        now = now or datetime.now(dt_timezone.utc)
        result = calculate_score(now, timezone)
        return ZoneScore(
            score=result.score,
            label=get_score_label(result.score),
            factors=result.factors,
            calculated_at=now,
            timezone=timezone,
            next_refresh=next_refresh_time(now),
        )


def build_zone_service(
    settings: config.Settings | None = None,
    session: requests.Session | None = None,
) -> ZoneScoringService:
    """Wire providers, caches and the scoring service from settings."""
    settings = settings or config.settings
    session = session or requests.Session()
    weather = WeatherGridCache(
        build_weather_provider(settings, session=session),
        ttl_seconds=settings.weather_cache_ttl_seconds,
        resolution=settings.weather_grid_resolution,
        max_entries=settings.weather_cache_max_entries,
    )
    events = EventsService(
        build_events_provider(settings, session=session),
        ttl_seconds=settings.events_cache_ttl_seconds,
        radius_km=settings.events_radius_km,
    )
    logger.info(
        "Zone scoring service ready",
        extra={"weather_configured": weather.is_configured(), "events_configured": events.is_configured()},
    )
    return ZoneScoringService(weather, events)
