"""Unified map entities produced by the feed parsers."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from pycotrip.ingestion.normalize import is_valid_coordinate
from pycotrip.models._base import CotripBaseModel, MarkerLayerType, OverlayLayerType


class Coordinate(CotripBaseModel):
    """A validated point location."""

    latitude: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    longitude: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)


class RouteCondition(CotripBaseModel):
    """One entry of a road segment's ``currentConditions`` list."""

    condition: str | None = None
    time_stamp: str | None = None


class MapMarkerData(CotripBaseModel):
    """Point entity rendered as a marker.

    Parameters
    ----------
    id : str
        Unique within its layer. Decomposed multi-point records use
        ``{sourceId}#{index}``.
    coordinate : Coordinate
        Marker location.
    layer_type : MarkerLayerType
        Layer the marker belongs to.
    title : str
        Primary display text.
    subtitle : str or None
        Secondary display text, when the source provides one.
    raw_data : dict
        Originating feed record, kept for detail views.
    """

    id: str = Field(min_length=1)
    coordinate: Coordinate
    layer_type: MarkerLayerType
    title: str
    subtitle: str | None = None
    raw_data: dict[str, Any] = Field(default_factory=dict)


class MapOverlayData(CotripBaseModel):
    """Polyline entity rendered as a map overlay.

    ``coordinates`` are ``(longitude, latitude)`` pairs in GeoJSON order;
    at least two are required.
    """

    id: str = Field(min_length=1)
    coordinates: list[tuple[float, float]] = Field(min_length=2)
    layer_type: OverlayLayerType
    route_name: str
    color: str
    conditions: list[RouteCondition] | None = None
    description: str | None = None
    direction: str | None = None
    event_type: str | None = None
    raw_data: dict[str, Any] | None = None

    @field_validator("coordinates")
    @classmethod
    def _check_coordinates(cls, value: list[tuple[float, float]]) -> list[tuple[float, float]]:
        for pair in value:
            if not is_valid_coordinate(pair):
                raise ValueError(f"invalid [longitude, latitude] pair: {pair!r}")
        return value
