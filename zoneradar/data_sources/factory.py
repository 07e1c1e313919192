"""Factory helpers for building upstream provider clients at startup."""

from __future__ import annotations

import requests

from zoneradar import config
from zoneradar.data_sources.openweather_client import OpenWeatherClient
from zoneradar.data_sources.ticketmaster_client import TicketmasterClient
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="data_sources/factory")


def build_weather_provider(
    settings: config.Settings | None = None,
    session: requests.Session | None = None,
) -> OpenWeatherClient:
    """Instantiate the OpenWeather client from settings."""
    settings = settings or config.settings
    client = OpenWeatherClient(
        settings.openweather_api_key,
        base_url=settings.openweather_base_url,
        timeout=settings.weather_timeout_seconds,
        session=session,
    )
    if client.is_configured():
        logger.info("Using OpenWeather weather provider")
    else:
        logger.warning("OpenWeather API key not configured; weather boost will use the neutral default")
    return client


def build_events_provider(
    settings: config.Settings | None = None,
    session: requests.Session | None = None,
) -> TicketmasterClient:
    """Instantiate the Ticketmaster client from settings."""
    settings = settings or config.settings
    client = TicketmasterClient(
        settings.ticketmaster_api_key,
        base_url=settings.ticketmaster_base_url,
        timeout=settings.events_timeout_seconds,
        session=session,
    )
    if client.is_configured():
        logger.info("Using Ticketmaster events provider")
    else:
        logger.warning("Ticketmaster API key not configured; event boost disabled")
    return client
