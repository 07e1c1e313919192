"""Deterministic candidate coordinates around a center point."""

from __future__ import annotations

import math
from typing import List

from zoneradar.domain import ZoneCandidate
from zoneradar.grid import validate_coordinates

DEFAULT_GRID_RADIUS = 2       # (2 * 2 + 1) ** 2 == 25 candidates
DEFAULT_STEP_DEGREES = 0.01   # ~1.1 km between rows


def _wrap_longitude(lng: float) -> float:
    return ((lng + 180.0) % 360.0) - 180.0


def _pole_shift(latitude: float, grid_radius: int, step_degrees: float) -> int:
    """Whole rows to move the grid so no row lies past a pole."""
    span = grid_radius * step_degrees
    if latitude + span > 90.0:
        return -math.ceil(round((latitude + span - 90.0) / step_degrees, 9))
    if latitude - span < -90.0:
        return math.ceil(round((-90.0 - (latitude - span)) / step_degrees, 9))
    return 0


def candidate_count(grid_radius: int = DEFAULT_GRID_RADIUS) -> int:
    """Number of candidates generate_candidates returns for grid_radius."""
    return (2 * grid_radius + 1) ** 2


def generate_candidates(
    latitude: float,
    longitude: float,
    grid_radius: int = DEFAULT_GRID_RADIUS,
    step_degrees: float = DEFAULT_STEP_DEGREES,
) -> List[ZoneCandidate]:
    """Square grid of candidates centred on (latitude, longitude).

    Rows run south to north and columns west to east, so the center is at
    index ``len(result) // 2``. Within ``grid_radius`` rows of a pole the grid
    slides away from it instead of clamping, which keeps every candidate
    distinct; the center is then still present but off the middle row.
    Raises InvalidCoordinateError for an out-of-range center.
    """
    validate_coordinates(latitude, longitude)
    if grid_radius < 0:
        raise ValueError("grid_radius must be >= 0")
    if step_degrees <= 0:
        raise ValueError("step_degrees must be positive")

    shift = _pole_shift(latitude, grid_radius, step_degrees)
    candidates: List[ZoneCandidate] = []
    for i in range(-grid_radius, grid_radius + 1):
        lat = max(-90.0, min(90.0, round(latitude + (i + shift) * step_degrees, 6)))
        for j in range(-grid_radius, grid_radius + 1):
            lng = longitude + j * step_degrees
            if not -180.0 <= lng <= 180.0:
                lng = _wrap_longitude(lng)
            candidates.append(ZoneCandidate(latitude=lat, longitude=round(lng, 6)))
    return candidates
