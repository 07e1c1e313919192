"""Client for the Ticketmaster Discovery events API."""
from __future__ import annotations

import datetime as dt
from typing import Any, List, Mapping, Optional

import requests

from zoneradar.data_sources.base import EventsProvider, EventsProviderError
from zoneradar.domain import EventRecord, EventType
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="ticketmaster_client")

TICKETMASTER_EVENTS_URL = "https://app.ticketmaster.com/discovery/v2/events.json"
KM_TO_MILES = 0.621371
LOOKAHEAD = dt.timedelta(days=1)
MAX_EVENTS = 50

_SEGMENT_TYPES = {
    "sports": EventType.SPORTS,
    "music": EventType.CONCERT,
    "arts & theatre": EventType.THEATER,
}


def _iso_z(value: dt.datetime) -> str:
    """Format a datetime as the second-precision UTC string Ticketmaster expects."""
    return value.astimezone(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _mapping(value: Any) -> Mapping[str, Any]:
    """Return value if it is a JSON object, else an empty one."""
    return value if isinstance(value, Mapping) else {}


def _first(value: Any) -> Any:
    """First element of a JSON array, or None."""
    return value[0] if isinstance(value, list) and value else None


def _parse_start(raw: Any, fallback: dt.datetime) -> dt.datetime:
    """Parse an ISO start time; unknown or naive values fall back / assume UTC."""
    if not raw or not isinstance(raw, str):
        return fallback
    try:
        parsed = dt.datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable event start time", extra={"raw": raw})
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def _parse_event(event: Mapping[str, Any], now: dt.datetime) -> Optional[EventRecord]:
    """Convert a single Discovery event; events without venue coordinates are skipped."""
    venue = _mapping(_first(_mapping(event.get("_embedded")).get("venues")))
    location = _mapping(venue.get("location"))
    if not location.get("latitude") or not location.get("longitude"):
        return None

    segment = _mapping(_mapping(_first(event.get("classifications"))).get("segment")).get("name")
    event_type = _SEGMENT_TYPES.get(segment.lower(), EventType.OTHER) if isinstance(segment, str) else EventType.OTHER

    start = _parse_start(_mapping(_mapping(event.get("dates")).get("start")).get("dateTime"), now)
    duration = dt.timedelta(hours=3 if event_type is EventType.SPORTS else 2)

    capacity_raw = _mapping(venue.get("generalInfo")).get("capacity")
    try:
        capacity = int(capacity_raw) if capacity_raw else None
    except (TypeError, ValueError):
        capacity = None

    try:
        return EventRecord(
            id=str(event.get("id", "")),
            name=str(event.get("name") or "Unnamed event"),
            venue_name=str(venue.get("name") or "Unknown venue"),
            venue_lat=float(location["latitude"]),
            venue_lng=float(location["longitude"]),
            start_time=start,
            end_time=start + duration,
            venue_capacity=capacity,
            type=event_type,
        )
    except (TypeError, ValueError):
        logger.debug("Skipping event with malformed venue location", extra={"event_id": event.get("id")})
        return None


def parse_events_payload(data: Mapping[str, Any], now: Optional[dt.datetime] = None) -> List[EventRecord]:
    """Turn a Discovery API JSON body into EventRecords; entries that are not objects are skipped."""
    now = now or dt.datetime.now(dt.timezone.utc)
    raw_events = _mapping(data.get("_embedded")).get("events")
    if not isinstance(raw_events, list):
        return []
    out: List[EventRecord] = []
    for raw in raw_events:
        if not isinstance(raw, Mapping):
            logger.debug("Skipping non-object event entry")
            continue
        parsed = _parse_event(raw, now)
        if parsed is not None:
            out.append(parsed)
    return out


class TicketmasterClient(EventsProvider):
    """Minimal client for Ticketmaster's event search."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = TICKETMASTER_EVENTS_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key or None
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def is_configured(self) -> bool:
        """Return True when an API key is present."""
        return bool(self.api_key)

    def fetch_events(
        self,
        latitude: float,
        longitude: float,
        *,
        radius_km: float = 10.0,
        start: Optional[dt.datetime] = None,
    ) -> List[EventRecord]:
        """Fetch events over the next day within radius_km of the coordinate."""
        if not self.api_key:
            raise EventsProviderError("Ticketmaster API key is not configured")

        start = start or dt.datetime.now(dt.timezone.utc)
        params = {
            "apikey": self.api_key,
            "latlong": f"{latitude},{longitude}",
            "radius": str(round(radius_km * KM_TO_MILES)),
            "unit": "miles",
            "startDateTime": _iso_z(start),
            "endDateTime": _iso_z(start + LOOKAHEAD),
            "size": str(MAX_EVENTS),
            "sort": "date,asc",
        }
        try:
            resp = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.error("Ticketmaster request failed: %s", exc)
            raise EventsProviderError(f"Ticketmaster request failed: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            logger.error("Ticketmaster API error: %s", resp.status_code)
            raise EventsProviderError(f"Ticketmaster returned status {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise EventsProviderError("Ticketmaster returned non-JSON response") from exc
        if not isinstance(data, Mapping):
            raise EventsProviderError("Ticketmaster returned an unexpected payload")

        try:
            events = parse_events_payload(data, now=start)
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            logger.error("Ticketmaster payload malformed: %s", exc)
            raise EventsProviderError("Ticketmaster returned a malformed payload") from exc
        logger.debug("Fetched events", extra={"count": len(events)})
        return events
