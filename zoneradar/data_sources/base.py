"""Interfaces and helpers for upstream weather and events providers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from zoneradar.domain import EventRecord, WeatherSnapshot


class WeatherProviderError(RuntimeError):
    """Recoverable upstream weather failure (transport, non-2xx, bad payload)."""


class EventsProviderError(RuntimeError):
    """Recoverable upstream events failure (transport, non-2xx, bad payload)."""


class WeatherProvider(Protocol):
    """Anything that can report current weather for a coordinate."""

    def is_configured(self) -> bool:
        """Return True when the provider credential is present."""
        ...

    def fetch_current(self, latitude: float, longitude: float) -> WeatherSnapshot:
        """Return current weather or raise WeatherProviderError."""
        ...


class EventsProvider(Protocol):
    """Anything that can list upcoming events around a coordinate."""

    def is_configured(self) -> bool:
        """Return True when the provider credential is present."""
        ...

    def fetch_events(
        self,
        latitude: float,
        longitude: float,
        *,
        radius_km: float = 10.0,
        start: Optional[datetime] = None,
    ) -> List[EventRecord]:
        """Return events near the coordinate or raise EventsProviderError."""
        ...


@dataclass
class CallableWeatherProvider(WeatherProvider):
    """Wrap a callable so alternate weather backends can be swapped in."""

    fetch: Callable[[float, float], WeatherSnapshot]
    configured: bool = True

    def is_configured(self) -> bool:
        """Report the configured flag given at construction."""
        return self.configured

    def fetch_current(self, latitude: float, longitude: float) -> WeatherSnapshot:
        """Delegate to the configured callable."""
        return self.fetch(latitude, longitude)


@dataclass
class CallableEventsProvider(EventsProvider):
    """Wrap a callable so alternate events backends can be swapped in."""

    fetch: Callable[..., List[EventRecord]]
    configured: bool = True

    def is_configured(self) -> bool:
        """Report the configured flag given at construction."""
        return self.configured

    def fetch_events(self, latitude: float, longitude: float, **kwargs) -> List[EventRecord]:
        """Delegate to the configured callable."""
        return self.fetch(latitude, longitude, **kwargs)
