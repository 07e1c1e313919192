"""Grid-quantized weather cache with stale-on-error fallback.

Coordinates are bucketed into 0.1-degree cells so nearby lookups share one
upstream call. Each cell's entry moves through three states:

    EMPTY --fetch ok--> FRESH --TTL elapses--> STALE --fetch ok--> FRESH

A failed fetch never changes state: an EMPTY cell answers with the neutral
weather score and a STALE cell keeps answering with its last good value.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Sequence

from zoneradar.data_sources.base import WeatherProvider, WeatherProviderError
from zoneradar.domain import WeatherScore, WeatherSnapshot
from zoneradar.grid import grid_key
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="weather_cache")

NEUTRAL_WEATHER_SCORE = 20
WEATHER_UNAVAILABLE = "Weather unavailable"
NEUTRAL_WEATHER = WeatherScore(score=NEUTRAL_WEATHER_SCORE, description=WEATHER_UNAVAILABLE)

COLD_THRESHOLD_F = 32.0
HEAT_THRESHOLD_F = 95.0
EXTREME_TEMP_BOOST = 20
MAX_WEATHER_SCORE = 100

DEFAULT_TTL_SECONDS = 15 * 60
STALE_RETENTION_MULTIPLIER = 4  # stale entries survive housekeeping for 4x TTL


@dataclass(frozen=True)
class ConditionBand:
    """Inclusive range of provider condition codes sharing one base score."""
    name: str
    min_code: int
    max_code: int
    score: int

    def matches(self, code: int) -> bool:
        """Return True if code falls inside this band."""
        return self.min_code <= code <= self.max_code


# OpenWeather condition codes; first matching band wins, unmatched codes
# (800 clear, 801-804 clouds) keep the clear-weather base.
DEFAULT_CONDITION_BANDS: tuple[ConditionBand, ...] = (
    ConditionBand("thunderstorm", 200, 232, 60),
    ConditionBand("drizzle", 300, 321, 35),
    ConditionBand("light_rain", 500, 500, 35),
    ConditionBand("light_shower_rain", 520, 520, 35),
    ConditionBand("rain", 501, 531, 50),
    ConditionBand("snow", 600, 622, 70),
    ConditionBand("atmosphere", 701, 781, 25),
)
CLEAR_SCORE = 20


def calculate_weather_score(
    snapshot: WeatherSnapshot,
    bands: Sequence[ConditionBand] = DEFAULT_CONDITION_BANDS,
) -> int:
    """Score weather on a 0-100 scale where worse weather means more demand."""
    score = CLEAR_SCORE
    for band in bands:
        if band.matches(snapshot.condition_code):
            score = band.score
            break

    if snapshot.temperature < COLD_THRESHOLD_F or snapshot.temperature > HEAT_THRESHOLD_F:
        score += EXTREME_TEMP_BOOST

    return min(MAX_WEATHER_SCORE, score)


class EntryState(str, Enum):
    """Freshness state of a grid cell."""
    EMPTY = "empty"
    FRESH = "fresh"
    STALE = "stale"


@dataclass(frozen=True)
class CacheEntry:
    """Last successful lookup for one grid cell."""
    grid_key: str
    snapshot: Optional[WeatherSnapshot]
    score: int
    description: str
    fetched_at: float  # clock() seconds

    def state(self, now: float, ttl_seconds: float) -> EntryState:
        """FRESH while younger than the TTL, STALE afterwards."""
        return EntryState.FRESH if now - self.fetched_at < ttl_seconds else EntryState.STALE

    def as_score(self) -> WeatherScore:
        """Return the cached value handed to callers."""
        return WeatherScore(score=self.score, description=self.description)


class WeatherGridCache:
    """Thread-safe weather cache shared by all concurrent zone requests."""

    def __init__(
        self,
        provider: Optional[WeatherProvider],
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        resolution: float = 0.1,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
        condition_bands: Sequence[ConditionBand] = DEFAULT_CONDITION_BANDS,
    ) -> None:
        """Initialize with an upstream provider and cache policy."""
        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self.resolution = resolution
        self.max_entries = max_entries
        self.condition_bands = tuple(condition_bands)
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def is_configured(self) -> bool:
        """Return True if the upstream provider has its credential."""
        return self.provider is not None and self.provider.is_configured()

    def key_for(self, latitude: float, longitude: float) -> str:
        """Grid key for a coordinate."""
        return grid_key(latitude, longitude, self.resolution, prefix="weather")

    def state(self, latitude: float, longitude: float) -> EntryState:
        """Current state of the cell containing the coordinate."""
        entry = self._lookup(self.key_for(latitude, longitude))
        if entry is None:
            return EntryState.EMPTY
        return entry.state(self._clock(), self.ttl_seconds)

    def get(self, latitude: float, longitude: float) -> WeatherScore:
        """Return the weather score for a coordinate, never raising on upstream failure."""
        if not self.is_configured():
            logger.debug("Weather provider not configured; returning neutral score")
            return NEUTRAL_WEATHER

        key = self.key_for(latitude, longitude)
        entry = self._lookup(key)
        if entry is not None and entry.state(self._clock(), self.ttl_seconds) is EntryState.FRESH:
            return entry.as_score()

        # one fetch per cell at a time; late arrivals reuse the winner's result
        with self._lock_for(key):
            entry = self._lookup(key)
            if entry is not None and entry.state(self._clock(), self.ttl_seconds) is EntryState.FRESH:
                return entry.as_score()
            return self._refresh(key, latitude, longitude, entry)

    def clear(self) -> None:
        """Evict every entry; the next get for any cell refetches."""
        with self._lock:
            self._entries.clear()
            self._key_locks.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def _lock_for(self, key: str) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def _refresh(
        self,
        key: str,
        latitude: float,
        longitude: float,
        previous: Optional[CacheEntry],
    ) -> WeatherScore:
        try:
            snapshot = self.provider.fetch_current(latitude, longitude)
        except WeatherProviderError as exc:
            if previous is not None:
                logger.warning("Weather refresh failed; serving stale entry", extra={"grid_key": key, "error": str(exc)})
                return previous.as_score()
            logger.warning("Weather refresh failed; using neutral score", extra={"grid_key": key, "error": str(exc)})
            with self._lock:
                self._key_locks.pop(key, None)
            return NEUTRAL_WEATHER

        entry = CacheEntry(
            grid_key=key,
            snapshot=snapshot,
            score=calculate_weather_score(snapshot, self.condition_bands),
            description=snapshot.description,
            fetched_at=self._clock(),
        )
        with self._lock:
            self._entries[key] = entry
            if len(self._entries) > self.max_entries:
                self._evict_old_locked(entry.fetched_at)
        logger.debug("Cached weather", extra={"grid_key": key, "score": entry.score})
        return entry.as_score()

    def _evict_old_locked(self, now: float) -> None:
        max_age = self.ttl_seconds * STALE_RETENTION_MULTIPLIER
        for key in [k for k, e in self._entries.items() if now - e.fetched_at > max_age]:
            del self._entries[key]
            self._key_locks.pop(key, None)
