"""Per-layer records: raw fetch results and the normalized cache."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pycotrip.models._base import LayerKey
from pycotrip.models.map_data import MapMarkerData, MapOverlayData


class RawLayerData(BaseModel):
    """Result of fetching every feed once.

    Each field holds the raw records of one feed; a feed that degraded is
    an empty list and is named in ``failures``.
    """

    model_config = ConfigDict(extra="forbid")

    road_conditions: list[dict[str, Any]] = Field(default_factory=list)
    incidents: list[dict[str, Any]] = Field(default_factory=list)
    weather_stations: list[dict[str, Any]] = Field(default_factory=list)
    snow_plows: list[dict[str, Any]] = Field(default_factory=list)
    planned_events: list[dict[str, Any]] = Field(default_factory=list)
    dms_signs: list[dict[str, Any]] = Field(default_factory=list)
    work_zones: list[dict[str, Any]] = Field(default_factory=list)
    failures: dict[LayerKey, str] = Field(default_factory=dict)

    @classmethod
    def empty(cls, reason: str | None = None) -> RawLayerData:
        """All-empty record; with *reason*, every feed is marked failed."""
        if reason is None:
            return cls()
        return cls(failures={key: reason for key in LayerKey})

    def records(self, key: LayerKey) -> list[dict[str, Any]]:
        return list(getattr(self, key.field_name))

    @property
    def all_failed(self) -> bool:
        return all(key in self.failures for key in LayerKey)

    def counts(self) -> dict[str, int]:
        return {key.value: len(getattr(self, key.field_name)) for key in LayerKey}


class LayerCache(BaseModel):
    """Normalized entities for every layer.

    Replaced as a whole on each successful refresh, so readers never see
    layers from two different refresh cycles.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    road_conditions: tuple[MapOverlayData, ...] = ()
    incidents: tuple[MapMarkerData, ...] = ()
    weather_stations: tuple[MapMarkerData, ...] = ()
    snow_plows: tuple[MapMarkerData, ...] = ()
    planned_events: tuple[MapMarkerData, ...] = ()
    dms_signs: tuple[MapMarkerData, ...] = ()
    work_zones: tuple[MapOverlayData, ...] = ()

    def entities(self, key: LayerKey) -> tuple[MapMarkerData, ...] | tuple[MapOverlayData, ...]:
        return getattr(self, key.field_name)

    def counts(self) -> dict[str, int]:
        return {key.value: len(self.entities(key)) for key in LayerKey}
