"""Coordinate validation helpers shared by every geospatial operation."""

import math
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from silvaplan.errors import ValidationError

T = TypeVar("T")


def is_finite_number(value: Any) -> bool:
    """Return True for real, finite numbers (booleans excluded)."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value)


def is_valid_latitude(lat: Any) -> bool:
    """Return True if lat is a finite number within [-90, 90]."""
    return is_finite_number(lat) and -90 <= lat <= 90


def is_valid_longitude(lng: Any) -> bool:
    """Return True if lng is a finite number within [-180, 180]."""
    return is_finite_number(lng) and -180 <= lng <= 180


def is_valid_lng_lat(lat: Any, lng: Any) -> bool:
    """Return True if both coordinates of the pair are valid."""
    return is_valid_latitude(lat) and is_valid_longitude(lng)


def assert_valid_lng_lat(lat: Any, lng: Any, label: str = "location") -> None:
    """Guard used before any write that stores coordinates.

    Raises:
        ValidationError: If the pair is not a valid coordinate.
    """
    if not is_valid_lng_lat(lat, lng):
        raise ValidationError(label)


def _coordinate(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def filter_valid_map_points(items: Iterable[T]) -> list[T]:
    """Keep only items with a valid lat/lng pair, preserving order.

    Items may be mappings with ``lat``/``lng`` keys or objects with
    ``lat``/``lng`` attributes.
    """
    return [item for item in items if is_valid_lng_lat(_coordinate(item, "lat"), _coordinate(item, "lng"))]


def format_coordinates(lat: float, lng: float, precision: int = 4) -> str:
    """Format a pair as the "lat, lng" display fallback."""
    return f"{lat:.{precision}f}, {lng:.{precision}f}"
