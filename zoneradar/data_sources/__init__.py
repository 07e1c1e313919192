"""Upstream weather and events providers."""

from .base import (
    CallableEventsProvider,
    CallableWeatherProvider,
    EventsProvider,
    EventsProviderError,
    WeatherProvider,
    WeatherProviderError,
)
from .factory import build_events_provider, build_weather_provider
from .openweather_client import OpenWeatherClient, parse_weather_payload
from .ticketmaster_client import TicketmasterClient, parse_events_payload

__all__ = [
    "build_events_provider",
    "build_weather_provider",
    "CallableEventsProvider",
    "CallableWeatherProvider",
    "EventsProvider",
    "EventsProviderError",
    "WeatherProvider",
    "WeatherProviderError",
    "OpenWeatherClient",
    "TicketmasterClient",
    "parse_weather_payload",
    "parse_events_payload",
]
