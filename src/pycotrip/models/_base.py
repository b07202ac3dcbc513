"""Base model and enums for pycotrip entities.

Every entity model inherits from :class:`CotripBaseModel` which provides:

* ``alias_generator=to_camel`` so entities serialize with the camelCase
  keys a rendering layer expects (``layerType``, ``rawData``, ...) while
  Python code uses snake_case attributes.
* Frozen instances, so a cached entity can be shared with consumers
  without copying.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class LayerKey(StrEnum):
    """One toggleable map layer, 1:1 with an upstream feed.

    Declaration order is the fixed order used when concatenating the
    visible overlays and markers.
    """

    ROAD_CONDITIONS = "roadConditions"
    INCIDENTS = "incidents"
    WEATHER_STATIONS = "weatherStations"
    SNOW_PLOWS = "snowPlows"
    PLANNED_EVENTS = "plannedEvents"
    DMS_SIGNS = "dmsSigns"
    WORK_ZONES = "workZones"

    @property
    def field_name(self) -> str:
        """Snake-case attribute name used by layer records."""
        return _FIELD_NAMES[self]


_FIELD_NAMES: dict[LayerKey, str] = {
    LayerKey.ROAD_CONDITIONS: "road_conditions",
    LayerKey.INCIDENTS: "incidents",
    LayerKey.WEATHER_STATIONS: "weather_stations",
    LayerKey.SNOW_PLOWS: "snow_plows",
    LayerKey.PLANNED_EVENTS: "planned_events",
    LayerKey.DMS_SIGNS: "dms_signs",
    LayerKey.WORK_ZONES: "work_zones",
}


class MarkerLayerType(StrEnum):
    INCIDENTS = "incidents"
    WEATHER_STATIONS = "weatherStations"
    SNOW_PLOWS = "snowPlows"
    PLANNED_EVENTS = "plannedEvents"
    DMS_SIGNS = "dmsSigns"


class OverlayLayerType(StrEnum):
    ROAD_CONDITION = "roadCondition"
    WORK_ZONE = "workZone"


OVERLAY_LAYERS: tuple[LayerKey, ...] = (LayerKey.ROAD_CONDITIONS, LayerKey.WORK_ZONES)
MARKER_LAYERS: tuple[LayerKey, ...] = tuple(key for key in LayerKey if key not in OVERLAY_LAYERS)


class CotripBaseModel(BaseModel):
    """Base for normalized pycotrip entities."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
