"""Turn nearby scheduled events into an event boost for zone scores."""

from __future__ import annotations

import datetime as dt
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from zoneradar.data_sources.base import EventsProvider, EventsProviderError
from zoneradar.domain import EventBoost, EventRecord, EventType, NearbyEvent
from zoneradar.grid import grid_key, haversine_km
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="events_service")

NO_EVENTS = EventBoost(score=0, nearby_events=[])

# (min venue capacity, boost); first match wins
CAPACITY_TIERS: tuple[tuple[int, int], ...] = (
    (50_000, 60),  # stadium
    (10_000, 50),  # arena
    (5_000, 40),   # large venue
    (1_000, 30),   # medium venue
    (0, 20),       # small venue
)
UNKNOWN_CAPACITY = 5_000

TYPE_MULTIPLIERS: Dict[EventType, float] = {
    EventType.SPORTS: 1.2,
    EventType.CONCERT: 1.1,
    EventType.THEATER: 0.9,
    EventType.OTHER: 1.0,
}

MAX_DISTANCE_KM = 5.0
PEAK_DISTANCE_KM = 1.0
MIN_DISTANCE_FACTOR = 0.3

HOURS_BEFORE_EVENT = 3
HOURS_AFTER_EVENT = 2
DEFAULT_EVENT_DURATION = dt.timedelta(hours=2)
MAX_REPORTED_EVENTS = 3

DEFAULT_TTL_SECONDS = 24 * 60 * 60
EVENTS_GRID_RESOLUTION = 0.05


@dataclass
class _CachedEvents:
    events: List[EventRecord]
    fetched_at: float


def _capacity_boost(capacity: Optional[int]) -> int:
    capacity = capacity or UNKNOWN_CAPACITY
    for min_capacity, boost in CAPACITY_TIERS:
        if capacity >= min_capacity:
            return boost
    return CAPACITY_TIERS[-1][1]


def _time_factor(now: dt.datetime, start: dt.datetime, end: dt.datetime,
                 window_start: dt.datetime, window_end: dt.datetime) -> float:
    """Ramp 0.5 -> 1.0 before the event, 1.0 during, decay 1.0 -> 0.3 after."""
    if start <= now <= end:
        return 1.0
    if now < start:
        ramp = (start - window_start).total_seconds()
        elapsed = (now - window_start).total_seconds()
        return 0.5 + 0.5 * elapsed / ramp
    decay = (window_end - end).total_seconds()
    elapsed = (now - end).total_seconds()
    return max(0.3, 1 - 0.7 * elapsed / decay)


def format_time_until(event_time: dt.datetime, now: dt.datetime) -> str:
    """Human 'starts in' text: 'in 1h 5m', 'in 12m', 'now', '2h ago'."""
    diff = (event_time - now).total_seconds()
    if diff < 0:
        past_hours = int(abs(diff) / 3600 + 0.5)
        return "now" if past_hours == 0 else f"{past_hours}h ago"
    hours = int(diff // 3600)
    minutes = int((diff % 3600) // 60)
    if hours == 0:
        return f"in {minutes}m"
    return f"in {hours}h {minutes}m"


def calculate_event_boost(
    events: Sequence[EventRecord],
    latitude: float,
    longitude: float,
    when: dt.datetime,
) -> EventBoost:
    """Score the strongest active event near the coordinate."""
    active: list[tuple[float, EventRecord]] = []
    for event in events:
        distance = haversine_km(latitude, longitude, event.venue_lat, event.venue_lng)
        if distance > MAX_DISTANCE_KM:
            continue

        start = event.start_time
        end = event.end_time or start + DEFAULT_EVENT_DURATION
        window_start = start - dt.timedelta(hours=HOURS_BEFORE_EVENT)
        window_end = end + dt.timedelta(hours=HOURS_AFTER_EVENT)
        if when < window_start or when > window_end:
            continue

        boost = _capacity_boost(event.venue_capacity) * TYPE_MULTIPLIERS.get(event.type, 1.0)
        if distance > PEAK_DISTANCE_KM:
            decay = 1 - (distance - PEAK_DISTANCE_KM) / (MAX_DISTANCE_KM - PEAK_DISTANCE_KM)
            boost *= max(MIN_DISTANCE_FACTOR, decay)
        boost *= _time_factor(when, start, end, window_start, window_end)
        active.append((boost, event))

    if not active:
        return NO_EVENTS

    active.sort(key=lambda item: item[0], reverse=True)
    top = min(100, int(active[0][0] + 0.5))
    nearby = [
        NearbyEvent(name=event.name, venue=event.venue_name, starts_in=format_time_until(event.start_time, when))
        for _, event in active[:MAX_REPORTED_EVENTS]
    ]
    return EventBoost(score=top, nearby_events=nearby)


class EventsService:
    """Cached, failure-tolerant wrapper around an events provider."""

    def __init__(
        self,
        provider: Optional[EventsProvider],
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        radius_km: float = 10.0,
        max_entries: int = 50,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self.radius_km = radius_km
        self.max_entries = max_entries
        self._clock = clock
        self._cache: Dict[str, _CachedEvents] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def is_configured(self) -> bool:
        """Return True if the upstream provider has its credential."""
        return self.provider is not None and self.provider.is_configured()

    def get_event_boost(self, latitude: float, longitude: float, when: Optional[dt.datetime] = None) -> EventBoost:
        """Event boost for a coordinate; no events or any failure gives a zero boost."""
        when = when or dt.datetime.now(dt.timezone.utc)
        events = self.get_nearby_events(latitude, longitude)
        if not events:
            return NO_EVENTS
        return calculate_event_boost(events, latitude, longitude, when)

    def get_nearby_events(self, latitude: float, longitude: float) -> List[EventRecord]:
        """Provider events around a coordinate, cached per 0.05-degree cell."""
        if not self.is_configured():
            return []

        key = grid_key(latitude, longitude, EVENTS_GRID_RESOLUTION, prefix="events")
        cached = self._fresh(key)
        if cached is not None:
            return cached.events

        with self._lock_for(key):
            cached = self._fresh(key)
            if cached is not None:
                return cached.events
            with self._lock:
                previous = self._cache.get(key)

            try:
                events = self.provider.fetch_events(latitude, longitude, radius_km=self.radius_km)
            except EventsProviderError as exc:
                if previous is not None:
                    logger.warning("Events refresh failed; serving stale events", extra={"grid_key": key, "error": str(exc)})
                    return previous.events
                logger.warning("Events refresh failed; assuming no events", extra={"grid_key": key, "error": str(exc)})
                with self._lock:
                    self._key_locks.pop(key, None)
                return []

            # empty results are cached too
            with self._lock:
                self._cache[key] = _CachedEvents(events=events, fetched_at=self._clock())
                if len(self._cache) > self.max_entries:
                    self._evict_old_locked(self._clock())
            return events

    def clear(self) -> None:
        """Drop all cached events."""
        with self._lock:
            self._cache.clear()
            self._key_locks.clear()

    def _fresh(self, key: str) -> Optional[_CachedEvents]:
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None and self._clock() - cached.fetched_at < self.ttl_seconds:
            return cached
        return None

    def _lock_for(self, key: str) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def _evict_old_locked(self, now: float) -> None:
        max_age = self.ttl_seconds * 2
        for key in [k for k, v in self._cache.items() if now - v.fetched_at > max_age]:
            del self._cache[key]
            self._key_locks.pop(key, None)
