"""Client for the OpenWeather current-weather API."""
from __future__ import annotations

from typing import Any, Mapping, Optional

import requests

from zoneradar.data_sources.base import WeatherProvider, WeatherProviderError
from zoneradar.domain import WeatherSnapshot
from utils.logging_utils import get_tagged_logger, mask_url_secrets

logger = get_tagged_logger(__name__, tag="openweather_client")

OPENWEATHER_WEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"

# Fallbacks for fields OpenWeather occasionally omits
DEFAULT_CONDITION_CODE = 800
DEFAULT_TEMPERATURE_F = 70.0
DEFAULT_DESCRIPTION = "unknown"
DEFAULT_CITY_NAME = "Unknown"


def parse_weather_payload(data: Mapping[str, Any]) -> WeatherSnapshot:
    """Turn an OpenWeather JSON body into a WeatherSnapshot."""
    weather = (data.get("weather") or [{}])[0] or {}
    main = data.get("main") or {}

    code = weather.get("id")
    temp = main.get("temp")
    return WeatherSnapshot(
        condition_code=int(code) if code is not None else DEFAULT_CONDITION_CODE,
        temperature=float(temp) if temp is not None else DEFAULT_TEMPERATURE_F,
        description=weather.get("description") or DEFAULT_DESCRIPTION,
        city_name=data.get("name") or DEFAULT_CITY_NAME,
    )


class OpenWeatherClient(WeatherProvider):
    """Minimal client for OpenWeather's current conditions endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = OPENWEATHER_WEATHER_URL,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key or None
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def is_configured(self) -> bool:
        """Return True when an API key is present."""
        return bool(self.api_key)

    def fetch_current(self, latitude: float, longitude: float) -> WeatherSnapshot:
        """Fetch current weather in imperial units.

        Raises WeatherProviderError on transport errors, non-2xx statuses and
        undecodable bodies so callers can fall back to cached data.
        """
        if not self.api_key:
            raise WeatherProviderError("OpenWeather API key is not configured")

        params = {
            "lat": latitude,
            "lon": longitude,
            "appid": self.api_key,
            "units": "imperial",
        }
        try:
            resp = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.error("OpenWeather request failed: %s", exc)
            raise WeatherProviderError(f"OpenWeather request failed: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            url = mask_url_secrets(getattr(resp, "url", "") or self.base_url)
            logger.error(
                "OpenWeather API error: %s",
                resp.status_code,
                extra={"url": url},
            )
            raise WeatherProviderError(f"OpenWeather returned status {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise WeatherProviderError("OpenWeather returned non-JSON response") from exc
        if not isinstance(data, Mapping):
            raise WeatherProviderError("OpenWeather returned an unexpected payload")

        try:
            snapshot = parse_weather_payload(data)
        except (TypeError, ValueError, KeyError, AttributeError, IndexError) as exc:
            logger.error("OpenWeather payload malformed: %s", exc)
            raise WeatherProviderError("OpenWeather returned a malformed payload") from exc
        logger.debug(
            "Fetched weather",
            extra={"latitude": latitude, "longitude": longitude, "code": snapshot.condition_code},
        )
        return snapshot
