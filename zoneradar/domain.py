"""Domain vocabulary and wire schemas for zone viability scores.

Everything that crosses the HTTP boundary is a Pydantic model serialized with
camelCase aliases; Python code uses the snake_case attribute names. Provider
records that never leave the process (weather snapshots, raw events) are plain
dataclasses. No scoring logic lives here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    """Base model with camelCase aliases and strict extra handling."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Dump to a JSON-ready dict using wire (camelCase) names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ScoreLabel(str, Enum):
    """Human label attached to a composite score."""
    HOT = "Hot"
    BUSY = "Busy"
    MODERATE = "Moderate"
    SLOW = "Slow"
    DEAD = "Dead"


class EventType(str, Enum):
    """Coarse event classification used for demand multipliers."""
    SPORTS = "sports"
    CONCERT = "concert"
    THEATER = "theater"
    OTHER = "other"


@dataclass(frozen=True)
class WeatherSnapshot:
    """Current weather for a coordinate as reported by the provider."""
    condition_code: int
    temperature: float  # Fahrenheit
    description: str
    city_name: str


@dataclass(frozen=True)
class WeatherScore:
    """Weather contribution handed to the score calculator."""
    score: int
    description: str


@dataclass(frozen=True)
class EventRecord:
    """A scheduled event at a venue with known coordinates."""
    id: str
    name: str
    venue_name: str
    venue_lat: float
    venue_lng: float
    start_time: datetime  # timezone-aware
    end_time: Optional[datetime] = None
    venue_capacity: Optional[int] = None
    type: EventType = EventType.OTHER


@dataclass(frozen=True)
class ZoneCandidate:
    """A coordinate around the request center that will be scored."""
    latitude: float
    longitude: float


class Coordinates(_WireModel):
    """Center point echoed back to the client."""
    lat: float
    lng: float


class ScoreFactors(_WireModel):
    """Independent, non-negative factors behind a composite score."""
    base_score: int = Field(ge=0)
    meal_time_boost: int = Field(ge=0)
    peak_hour_boost: int = Field(ge=0)
    weekend_boost: int = Field(ge=0)
    weather_boost: int = Field(ge=0)
    event_boost: int = Field(ge=0)


class NearbyEvent(_WireModel):
    """Event summary shown next to a zone score."""
    name: str
    venue: str
    starts_in: str


class EventBoost(_WireModel):
    """Events contribution: boost value plus the events that produced it."""
    score: int = Field(default=0, ge=0, le=100)
    nearby_events: List[NearbyEvent] = Field(default_factory=list)


class ScoreResult(_WireModel):
    """Raw calculator output before labelling."""
    score: int = Field(ge=0, le=100)
    factors: ScoreFactors


class ZoneScore(_WireModel):
    """Viability score for one point at one moment."""
    score: int = Field(ge=0, le=100)
    label: ScoreLabel
    factors: ScoreFactors
    weather_description: Optional[str] = None
    nearby_events: Optional[List[NearbyEvent]] = None
    calculated_at: datetime
    timezone: str
    next_refresh: datetime


class ZoneResult(ZoneScore):
    """ZoneScore tagged with the candidate coordinates it was computed for."""
    latitude: float
    longitude: float


class NearbyZonesMeta(_WireModel):
    """Metadata block of the batch nearby-zones response."""
    center: Coordinates
    total_zones: int
    calculated_at: datetime
    timezone: str


class NearbyZonesResponse(_WireModel):
    """Batch nearby-zones response."""
    zones: List[ZoneResult]
    meta: NearbyZonesMeta


class MetaMessage(_WireModel):
    """First stream message: what is about to be computed."""
    type: Literal["meta"] = "meta"
    center: Coordinates
    total_candidates: int


class ZoneMessage(_WireModel):
    """One finished candidate."""
    type: Literal["zone"] = "zone"
    data: ZoneResult


class CompleteMessage(_WireModel):
    """Last stream message on success."""
    type: Literal["complete"] = "complete"
    total_zones: int


class ErrorMessage(_WireModel):
    """Last stream message when the stream fails after it has started."""
    type: Literal["error"] = "error"
    message: str


StreamMessage = Union[MetaMessage, ZoneMessage, CompleteMessage]


class HealthResponse(_WireModel):
    """Liveness plus upstream configuration status."""
    status: str = "ok"
    weather_configured: bool
    events_configured: bool
