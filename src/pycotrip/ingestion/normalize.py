"""Normalization helpers.

Centralizes defensive field access, coordinate validation and the small
text-formatting rules shared by the feed parsers.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any

from pycotrip._constants import LATITUDE_MAX, LATITUDE_MIN, LONGITUDE_MAX, LONGITUDE_MIN


def _is_real_number(value: Any) -> bool:
    # bool is an int subclass; a JSON true/false is never a coordinate.
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_valid_lon_lat(longitude: Any, latitude: Any) -> bool:
    """Return ``True`` when both values are finite numbers within range."""
    if not (_is_real_number(longitude) and _is_real_number(latitude)):
        return False
    if not (math.isfinite(longitude) and math.isfinite(latitude)):
        return False
    return LONGITUDE_MIN <= longitude <= LONGITUDE_MAX and LATITUDE_MIN <= latitude <= LATITUDE_MAX


def is_valid_coordinate(candidate: Any) -> bool:
    """Return ``True`` iff *candidate* is a valid ``[longitude, latitude]`` pair.

    The pair must be a list or tuple of exactly two finite numbers, with
    longitude in [-180, 180] and latitude in [-90, 90]. Never raises.
    """
    if not isinstance(candidate, (list, tuple)) or len(candidate) != 2:
        return False
    longitude, latitude = candidate
    return is_valid_lon_lat(longitude, latitude)


def as_dict(value: Any) -> dict[str, Any]:
    """Return *value* when it is a dict, else an empty dict."""
    return value if isinstance(value, dict) else {}


def dig(data: Any, *path: str) -> Any:
    """Follow *path* through nested dicts, returning ``None`` on any miss."""
    current = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def first_text(*values: Any) -> str | None:
    """Return the first truthy value as text, or ``None``."""
    for value in values:
        if value:
            return str(value)
    return None


def join_present(parts: Iterable[Any], separator: str = " - ") -> str | None:
    """Join the truthy *parts* with *separator*; ``None`` if nothing is left."""
    joined = separator.join(str(part) for part in parts if part)
    return joined or None


def geometry_coordinates(feature: Any) -> list[Any] | None:
    """Return ``feature.geometry.coordinates`` when it is a list."""
    coordinates = dig(feature, "geometry", "coordinates")
    return coordinates if isinstance(coordinates, list) else None


def to_lon_lat(candidate: Any) -> tuple[float, float]:
    """Convert an already-validated pair to a ``(longitude, latitude)`` float tuple."""
    longitude, latitude = candidate
    return float(longitude), float(latitude)
