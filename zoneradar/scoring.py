"""Deterministic composite score for a zone at a moment in time.

Each factor is computed independently on a 0-100 scale from the local time in
the caller's timezone (meal windows, rush hours, day of week) plus the weather
and event boosts handed in by the caller. The composite score is the weighted
sum of the factors, rounded and clamped to 0-100. Nothing here does I/O.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from zoneradar.domain import ScoreFactors, ScoreLabel, ScoreResult
from zoneradar.weather_cache import NEUTRAL_WEATHER_SCORE
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="scoring")

BASE_SCORE = 50

# (start hour, end hour, score); end is exclusive
BREAKFAST = (7, 10, 40)
LUNCH = (11, 14, 80)
DINNER = (17, 21, 100)
LATE_NIGHT = (21, 24, 50)
OFF_PEAK_SCORE = 20

WEEKEND_BREAKFAST_MULTIPLIER = 1.1
WEEKEND_DINNER_MULTIPLIER = 1.2
TRANSITION_HOURS = 0.5

WEIGHTS = {
    "meal_time_boost": 0.25,
    "peak_hour_boost": 0.25,
    "weekend_boost": 0.15,
    "weather_boost": 0.15,
    "base_score": 0.20,
    "event_boost": 0.10,
}

REFRESH_INTERVAL_MINUTES = 15

_LABEL_THRESHOLDS = (
    (80, ScoreLabel.HOT),
    (60, ScoreLabel.BUSY),
    (40, ScoreLabel.MODERATE),
    (20, ScoreLabel.SLOW),
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def resolve_timezone(name: Optional[str]) -> ZoneInfo:
    """Return the ZoneInfo for name, falling back to UTC when it is unknown."""
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r; falling back to UTC", name)
        return ZoneInfo("UTC")


def _interpolate(hour: float, start: float, end: float, from_score: float, to_score: float) -> int:
    progress = _clamp((hour - start) / (end - start), 0.0, 1.0)
    return _round_half_up(from_score + (to_score - from_score) * progress)


def _window_score(hour: float, start: float, end: float, from_score: float, to_score: float) -> int:
    """Full score inside a window, with half-hour ramps at entry and exit."""
    if hour < start + TRANSITION_HOURS:
        return _interpolate(hour, start, start + TRANSITION_HOURS, from_score, to_score)
    if hour >= end - TRANSITION_HOURS:
        return _interpolate(hour, end - TRANSITION_HOURS, end, to_score, from_score)
    return int(to_score)


def meal_time_boost(hour: float, is_weekend: bool = False) -> int:
    """Meal-window demand for a fractional local hour (11.5 == 11:30)."""
    b_start, b_end, b_score = BREAKFAST
    l_start, l_end, l_score = LUNCH
    d_start, d_end, d_score = DINNER
    n_start, n_end, n_score = LATE_NIGHT

    if b_start <= hour < b_end:
        score = _window_score(hour, b_start, b_end, OFF_PEAK_SCORE, b_score)
        return min(100, _round_half_up(score * WEEKEND_BREAKFAST_MULTIPLIER)) if is_weekend else score
    if b_end <= hour < b_end + TRANSITION_HOURS:
        return _interpolate(hour, b_end, b_end + TRANSITION_HOURS, b_score, OFF_PEAK_SCORE)
    if l_start - TRANSITION_HOURS <= hour < l_start:
        return _interpolate(hour, l_start - TRANSITION_HOURS, l_start, OFF_PEAK_SCORE, l_score)
    if l_start <= hour < l_end:
        return _window_score(hour, l_start, l_end, OFF_PEAK_SCORE, l_score)
    if l_end <= hour < l_end + TRANSITION_HOURS:
        return _interpolate(hour, l_end, l_end + TRANSITION_HOURS, l_score, OFF_PEAK_SCORE)
    if d_start - TRANSITION_HOURS <= hour < d_start:
        return _interpolate(hour, d_start - TRANSITION_HOURS, d_start, OFF_PEAK_SCORE, d_score)
    if d_start <= hour < d_end:
        score = _window_score(hour, d_start, d_end, OFF_PEAK_SCORE, d_score)
        return min(100, _round_half_up(score * WEEKEND_DINNER_MULTIPLIER)) if is_weekend else score
    # dinner hands straight over to late night, both are busy
    if n_start <= hour < n_end:
        return n_score
    return OFF_PEAK_SCORE


def peak_hour_boost(hour: float) -> int:
    """Rush-hour demand by whole local hour."""
    h = int(math.floor(hour))
    if 11 <= h < 14:
        return 90  # lunch rush
    if 17 <= h < 21:
        return 100  # dinner rush
    if 7 <= h < 10:
        return 70
    if 21 <= h < 23:
        return 50
    if h >= 23 or h < 6:
        return 10
    return 40


def weekend_boost(weekday: int) -> int:
    """Day-of-week demand; weekday follows datetime.weekday() (Monday == 0)."""
    if weekday == 5:
        return 90  # Saturday
    if weekday == 6:
        return 80  # Sunday
    if weekday == 4:
        return 70  # Friday
    return 50


def calculate_score(
    when: Optional[datetime] = None,
    timezone: str = "UTC",
    weather_boost: int = NEUTRAL_WEATHER_SCORE,
    event_boost: int = 0,
) -> ScoreResult:
    """Compute the composite score and its factor breakdown.

    ``when`` defaults to now; naive datetimes are treated as UTC. Every weight
    is positive, so raising any single boost never lowers the score.
    """
    when = when or datetime.now(dt_timezone.utc)
    if when.tzinfo is None:
        when = when.replace(tzinfo=dt_timezone.utc)
    local = when.astimezone(resolve_timezone(timezone))
    hour = local.hour + local.minute / 60
    weekday = local.weekday()
    is_weekend = weekday in (5, 6)

    factors = ScoreFactors(
        base_score=BASE_SCORE,
        meal_time_boost=meal_time_boost(hour, is_weekend),
        peak_hour_boost=peak_hour_boost(hour),
        weekend_boost=weekend_boost(weekday),
        weather_boost=max(0, int(weather_boost)),
        event_boost=max(0, int(event_boost)),
    )
    weighted = sum(getattr(factors, name) * weight for name, weight in WEIGHTS.items())
    score = int(_clamp(_round_half_up(weighted)))
    return ScoreResult(score=score, factors=factors)


def get_score_label(score: int) -> ScoreLabel:
    """Map a 0-100 score to its label."""
    for threshold, label in _LABEL_THRESHOLDS:
        if score >= threshold:
            return label
    return ScoreLabel.DEAD


def next_refresh_time(now: Optional[datetime] = None) -> datetime:
    """Next quarter-hour boundary strictly after now."""
    now = now or datetime.now(dt_timezone.utc)
    floored = now.replace(minute=(now.minute // REFRESH_INTERVAL_MINUTES) * REFRESH_INTERVAL_MINUTES,
                          second=0, microsecond=0)
    return floored + timedelta(minutes=REFRESH_INTERVAL_MINUTES)
