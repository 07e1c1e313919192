"""Coordinate helpers shared by the caches and the candidate generator."""

from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0


class InvalidCoordinateError(ValueError):
    """Raised when a latitude/longitude pair is outside the valid range."""


def validate_coordinates(latitude: float, longitude: float) -> None:
    """Raise InvalidCoordinateError unless the pair is a finite, in-range point."""
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError) as exc:
        raise InvalidCoordinateError(f"Coordinates must be numbers, got ({latitude!r}, {longitude!r})") from exc
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidCoordinateError("Coordinates must be finite numbers")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinateError(f"lat must be between -90 and 90, got {lat}")
    if not -180.0 <= lng <= 180.0:
        raise InvalidCoordinateError(f"lng must be between -180 and 180, got {lng}")


def _cell_index(value: float, resolution: float) -> int:
    # rounding first keeps 34.05 / 0.1 from landing just under 340.5
    return math.floor(round(value / resolution, 9))


def _decimals(resolution: float) -> int:
    return max(0, -math.floor(math.log10(resolution)))


def grid_key(latitude: float, longitude: float, resolution: float = 0.1, prefix: str = "weather") -> str:
    """Bucket a coordinate into the south-west corner of its grid cell.

    Every point inside the same ``resolution``-degree cell maps to the same key,
    e.g. (34.05, -118.24) and (34.08, -118.22) both give ``weather:34.0:-118.3``.
    """
    if resolution <= 0:
        raise ValueError("resolution must be positive")
    digits = _decimals(resolution)
    lat_cell = _cell_index(latitude, resolution) * resolution
    lng_cell = _cell_index(longitude, resolution) * resolution
    return f"{prefix}:{lat_cell:.{digits}f}:{lng_cell:.{digits}f}"


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
