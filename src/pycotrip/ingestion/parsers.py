"""Feed parsers: raw COtrip records to map-ready entities.

Each parser takes the raw records of one feed and returns markers or
overlays. Parsers never raise: a record that is missing its identifier or
has unusable geometry is skipped with a DEBUG log, and an unexpected error
while building one record is logged and the loop moves on.

Geometry policy per feed:

* road conditions, work zones: keep every valid vertex, drop the record
  when fewer than two remain.
* incidents: one marker per valid point of the MultiPoint, id
  ``{sourceId}#{index}``.
* planned events: first point of the MultiPoint only.
* weather stations, DMS signs: single Point.
* snow plows: bespoke ``avl_location.position`` record.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from pycotrip._constants import ROAD_CONDITION_COLOR, WORK_ZONE_COLOR
from pycotrip._redact import redact_for_log
from pycotrip.ingestion.normalize import (
    as_dict,
    dig,
    first_text,
    geometry_coordinates,
    is_valid_coordinate,
    is_valid_lon_lat,
    join_present,
    safe_str,
    to_lon_lat,
)
from pycotrip.models._base import LayerKey, MarkerLayerType, OverlayLayerType
from pycotrip.models.layers import LayerCache, RawLayerData
from pycotrip.models.map_data import Coordinate, MapMarkerData, MapOverlayData, RouteCondition

_logger = logging.getLogger(__name__)

T = TypeVar("T", MapMarkerData, MapOverlayData)

_DMS_STATUS_LABELS: dict[str, str] = {"on": "Active", "off": "Off"}
_WORK_ZONE_GEOMETRIES: frozenset[str] = frozenset({"LineString", "MultiPoint"})
_UNKNOWN = "Unknown"


def _parse_records(
    records: Sequence[Any],
    label: str,
    parse_one: Callable[[dict[str, Any], int], list[T]],
) -> list[T]:
    """Run *parse_one* over every record, isolating per-record failures.

    *parse_one* receives the record and the number of entities emitted so
    far, and returns the entities for that record (possibly none).
    """
    _logger.debug("Parsing %s: input count = %d", label, len(records))
    entities: list[T] = []
    for record in records:
        if not isinstance(record, dict):
            _logger.debug("Skipping non-object %s record", label)
            continue
        try:
            entities.extend(parse_one(record, len(entities)))
        except Exception:
            _logger.warning("Failed to parse %s record", label, exc_info=True)
            _logger.debug("Unparsed %s record: %s", label, redact_for_log(record, max_string=200))
    _logger.debug("Parsing %s: output count = %d", label, len(entities))
    return entities


def _record_id(record: dict[str, Any]) -> str | None:
    return first_text(dig(record, "properties", "id"))


def _marker(
    *,
    record_id: str,
    candidate: Any,
    layer_type: MarkerLayerType,
    title: str,
    subtitle: str | None,
    record: dict[str, Any],
) -> MapMarkerData:
    longitude, latitude = to_lon_lat(candidate)
    return MapMarkerData(
        id=record_id,
        coordinate=Coordinate(latitude=latitude, longitude=longitude),
        layer_type=layer_type,
        title=title,
        subtitle=subtitle,
        raw_data=record,
    )


def _valid_vertices(coordinates: list[Any], label: str, record_id: str) -> list[tuple[float, float]]:
    vertices: list[tuple[float, float]] = []
    for candidate in coordinates:
        if not is_valid_coordinate(candidate):
            _logger.debug("%s %s has invalid coordinate %r, filtering out", label, record_id, candidate)
            continue
        vertices.append(to_lon_lat(candidate))
    return vertices


# ---------------------------------------------------------------------------
# Road conditions
# ---------------------------------------------------------------------------


def _route_conditions(value: Any) -> list[RouteCondition]:
    if not isinstance(value, list):
        return []
    return [
        RouteCondition(condition=safe_str(item.get("condition")), time_stamp=safe_str(item.get("timeStamp")))
        for item in value
        if isinstance(item, dict)
    ]


def _parse_road_condition(record: dict[str, Any], _emitted: int) -> list[MapOverlayData]:
    record_id = _record_id(record)
    if record_id is None:
        _logger.debug("Road condition missing id, skipping")
        return []

    coordinates = geometry_coordinates(record)
    if coordinates is None:
        _logger.debug("Road condition %s has invalid coordinates, skipping", record_id)
        return []

    vertices = _valid_vertices(coordinates, "Road condition", record_id)
    if len(vertices) < 2:
        _logger.debug("Road condition %s has fewer than 2 valid coordinates, skipping", record_id)
        return []

    properties = as_dict(record.get("properties"))
    return [
        MapOverlayData(
            id=record_id,
            coordinates=vertices,
            layer_type=OverlayLayerType.ROAD_CONDITION,
            route_name=first_text(properties.get("routeName")) or "Unknown Route",
            conditions=_route_conditions(properties.get("currentConditions")),
            color=ROAD_CONDITION_COLOR,
        )
    ]


def parse_road_conditions_to_overlays(records: Sequence[Any]) -> list[MapOverlayData]:
    """Parse road condition LineString features into overlays."""
    return _parse_records(records, "road conditions", _parse_road_condition)


# ---------------------------------------------------------------------------
# Incidents
# ---------------------------------------------------------------------------


def _parse_incident(record: dict[str, Any], _emitted: int) -> list[MapMarkerData]:
    record_id = _record_id(record)
    if record_id is None:
        _logger.debug("Incident missing id, skipping")
        return []

    coordinates = geometry_coordinates(record)
    if coordinates is None:
        _logger.debug("Incident %s has invalid coordinates, skipping", record_id)
        return []

    properties = as_dict(record.get("properties"))
    title = first_text(properties.get("type")) or "Incident"
    subtitle = join_present([properties.get("severity"), properties.get("routeName")])

    markers: list[MapMarkerData] = []
    # One marker per point; the index is the position in the source set, so
    # skipped points leave gaps rather than renumbering.
    for index, candidate in enumerate(coordinates):
        if not is_valid_coordinate(candidate):
            _logger.debug("Incident %s coordinate %d is invalid, skipping", record_id, index)
            continue
        markers.append(
            _marker(
                record_id=f"{record_id}#{index}",
                candidate=candidate,
                layer_type=MarkerLayerType.INCIDENTS,
                title=title,
                subtitle=subtitle,
                record=record,
            )
        )
    return markers


def parse_incidents_to_markers(records: Sequence[Any]) -> list[MapMarkerData]:
    """Parse incident MultiPoint features, one marker per valid point."""
    return _parse_records(records, "incidents", _parse_incident)


# ---------------------------------------------------------------------------
# Weather stations
# ---------------------------------------------------------------------------


def _temperature_reading(sensors: Any) -> str | None:
    if not isinstance(sensors, list):
        return None
    for sensor in sensors:
        if not isinstance(sensor, dict):
            continue
        sensor_type = sensor.get("type")
        if isinstance(sensor_type, str) and sensor_type.lower() == "temperature":
            return first_text(sensor.get("currentReading"))
    return None


def _parse_weather_station(record: dict[str, Any], _emitted: int) -> list[MapMarkerData]:
    record_id = _record_id(record)
    if record_id is None:
        _logger.debug("Weather station missing id, skipping")
        return []

    candidate = dig(record, "geometry", "coordinates")
    if not is_valid_coordinate(candidate):
        _logger.debug("Weather station %s has invalid coordinates, skipping", record_id)
        return []

    properties = as_dict(record.get("properties"))
    return [
        _marker(
            record_id=record_id,
            candidate=candidate,
            layer_type=MarkerLayerType.WEATHER_STATIONS,
            title=first_text(properties.get("publicName"), properties.get("name")) or "Weather Station",
            subtitle=_temperature_reading(properties.get("sensors")),
            record=record,
        )
    ]


def parse_weather_stations_to_markers(records: Sequence[Any]) -> list[MapMarkerData]:
    """Parse weather station Point features; subtitle is the temperature reading."""
    return _parse_records(records, "weather stations", _parse_weather_station)


# ---------------------------------------------------------------------------
# Snow plows (not GeoJSON)
# ---------------------------------------------------------------------------


def _known_text(value: Any) -> str | None:
    """Text of *value*, treating the feed's literal ``"Unknown"`` as absent."""
    text = first_text(value)
    if text is None or text == _UNKNOWN:
        return None
    return text


def _parse_snow_plow(record: dict[str, Any], _emitted: int) -> list[MapMarkerData]:
    location = as_dict(record.get("avl_location"))
    vehicle = as_dict(location.get("vehicle"))

    vehicle_id = first_text(vehicle.get("id"), vehicle.get("id2"), record.get("rtdh_timestamp"))
    if vehicle_id is None:
        _logger.debug("Snow plow missing vehicle id, skipping")
        return []

    latitude = dig(location, "position", "latitude")
    longitude = dig(location, "position", "longitude")
    if not is_valid_lon_lat(longitude, latitude):
        _logger.debug("Snow plow %s has invalid coordinates, skipping", vehicle_id)
        return []

    vehicle_type = _known_text(vehicle.get("type"))
    title = f"Snow Plow - {vehicle_type}" if vehicle_type else "Snow Plow"

    return [
        _marker(
            record_id=vehicle_id,
            candidate=(longitude, latitude),
            layer_type=MarkerLayerType.SNOW_PLOWS,
            title=title,
            subtitle=_known_text(dig(location, "current_status", "info")),
            record=record,
        )
    ]


def parse_snow_plows_to_markers(records: Sequence[Any]) -> list[MapMarkerData]:
    """Parse snow plow AVL records into markers."""
    return _parse_records(records, "snow plows", _parse_snow_plow)


# ---------------------------------------------------------------------------
# Planned events
# ---------------------------------------------------------------------------


def _parse_planned_event(record: dict[str, Any], _emitted: int) -> list[MapMarkerData]:
    record_id = _record_id(record)
    if record_id is None:
        _logger.debug("Planned event missing id, skipping")
        return []

    coordinates = geometry_coordinates(record)
    if coordinates is None:
        _logger.debug("Planned event %s has invalid coordinates, skipping", record_id)
        return []

    # Later points repeat the event location; only the first is used.
    first = coordinates[0] if coordinates else None
    if not is_valid_coordinate(first):
        _logger.debug("Planned event %s has invalid first coordinate, skipping", record_id)
        return []

    properties = as_dict(record.get("properties"))
    return [
        _marker(
            record_id=record_id,
            candidate=first,
            layer_type=MarkerLayerType.PLANNED_EVENTS,
            title=first_text(properties.get("name")) or "Planned Event",
            subtitle=join_present([properties.get("type"), properties.get("routeName")]),
            record=record,
        )
    ]


def parse_planned_events_to_markers(records: Sequence[Any]) -> list[MapMarkerData]:
    """Parse planned event MultiPoint features using their first point."""
    return _parse_records(records, "planned events", _parse_planned_event)


# ---------------------------------------------------------------------------
# DMS signs
# ---------------------------------------------------------------------------


def _display_status_label(value: Any) -> str:
    status = first_text(value) or "unknown"
    return _DMS_STATUS_LABELS.get(status, status)


def _parse_dms_sign(record: dict[str, Any], _emitted: int) -> list[MapMarkerData]:
    record_id = _record_id(record)
    if record_id is None:
        _logger.debug("DMS sign missing id, skipping")
        return []

    candidate = dig(record, "geometry", "coordinates")
    if not is_valid_coordinate(candidate):
        _logger.debug("DMS sign %s has invalid coordinates, skipping", record_id)
        return []

    properties = as_dict(record.get("properties"))
    return [
        _marker(
            record_id=record_id,
            candidate=candidate,
            layer_type=MarkerLayerType.DMS_SIGNS,
            title=first_text(properties.get("publicName"), properties.get("name")) or "DMS Sign",
            subtitle=join_present([_display_status_label(properties.get("displayStatus")), properties.get("routeName")]),
            record=record,
        )
    ]


def parse_dms_signs_to_markers(records: Sequence[Any]) -> list[MapMarkerData]:
    """Parse DMS sign Point features; subtitle carries the display status."""
    return _parse_records(records, "DMS signs", _parse_dms_sign)


# ---------------------------------------------------------------------------
# Work zones (WZDx)
# ---------------------------------------------------------------------------


def _road_names(value: Any) -> str | None:
    if not isinstance(value, list):
        return None
    return join_present(value, separator=", ")


def _parse_work_zone(record: dict[str, Any], emitted: int) -> list[MapOverlayData]:
    core = as_dict(dig(record, "properties", "core_details"))
    record_id = first_text(core.get("data_source_id")) or f"wz-{emitted}"

    coordinates = geometry_coordinates(record)
    if coordinates is None:
        _logger.debug("Work zone %s has invalid coordinates, skipping", record_id)
        return []

    geometry_type = dig(record, "geometry", "type")
    vertices: list[tuple[float, float]] = []
    if geometry_type in _WORK_ZONE_GEOMETRIES:
        # A MultiPoint is drawn as a line through its points in order.
        vertices = _valid_vertices(coordinates, "Work zone", record_id)

    if len(vertices) < 2:
        _logger.debug("Work zone %s has fewer than 2 valid coordinates, skipping", record_id)
        return []

    return [
        MapOverlayData(
            id=record_id,
            coordinates=vertices,
            layer_type=OverlayLayerType.WORK_ZONE,
            route_name=_road_names(core.get("road_names")) or "Unknown Road",
            color=WORK_ZONE_COLOR,
            description=safe_str(core.get("description")),
            direction=safe_str(core.get("direction")),
            event_type=safe_str(core.get("event_type")),
            raw_data=record,
        )
    ]


def parse_work_zones_to_overlays(records: Sequence[Any]) -> list[MapOverlayData]:
    """Parse WZDx work zone features (LineString or MultiPoint) into overlays."""
    return _parse_records(records, "work zones", _parse_work_zone)


# ---------------------------------------------------------------------------
# All layers
# ---------------------------------------------------------------------------

PARSERS: dict[LayerKey, Callable[[Sequence[Any]], list[Any]]] = {
    LayerKey.ROAD_CONDITIONS: parse_road_conditions_to_overlays,
    LayerKey.INCIDENTS: parse_incidents_to_markers,
    LayerKey.WEATHER_STATIONS: parse_weather_stations_to_markers,
    LayerKey.SNOW_PLOWS: parse_snow_plows_to_markers,
    LayerKey.PLANNED_EVENTS: parse_planned_events_to_markers,
    LayerKey.DMS_SIGNS: parse_dms_signs_to_markers,
    LayerKey.WORK_ZONES: parse_work_zones_to_overlays,
}


def normalize_layer_data(raw: RawLayerData) -> LayerCache:
    """Parse every feed of *raw* into a new :class:`LayerCache`."""
    return LayerCache(**{key.field_name: tuple(PARSERS[key](raw.records(key))) for key in LayerKey})
