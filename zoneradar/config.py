"""Application configuration pulled from environment variables via pydantic."""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the zone scoring service."""
    model_config = SettingsConfigDict(env_prefix="ZONES_", extra="ignore")

    # weather provider (OpenWeather)
    openweather_api_key: str | None = None
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5/weather"
    weather_timeout_seconds: float = 5.0
    weather_cache_ttl_seconds: int = 900
    weather_grid_resolution: float = 0.1
    weather_cache_max_entries: int = 100

    # events provider (Ticketmaster Discovery)
    ticketmaster_api_key: str | None = None
    ticketmaster_base_url: str = "https://app.ticketmaster.com/discovery/v2/events.json"
    events_timeout_seconds: float = 10.0
    events_cache_ttl_seconds: int = 86400
    events_radius_km: float = 10.0

    # nearby zones
    candidate_grid_radius: int = 2  # 5x5 grid
    candidate_step_degrees: float = 0.01
    stream_max_workers: int = 8
    stream_queue_size: int = 4
    nearby_timeout_seconds: float = 60.0

    log_level: str = "INFO"

    @field_validator("openweather_base_url", "ticketmaster_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4, exclude={'openweather_api_key', 'ticketmaster_api_key'})}")
