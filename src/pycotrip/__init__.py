"""pycotrip - Async ingestion and layer cache for COtrip traffic feeds."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pycotrip")
except PackageNotFoundError:
    __version__ = "0+local"
from pycotrip._api.feeds import (
    fetch_all_layer_data,
    fetch_dms_signs,
    fetch_incidents,
    fetch_planned_events,
    fetch_road_conditions,
    fetch_snow_plows,
    fetch_weather_stations,
    fetch_work_zones,
)
from pycotrip.config import CotripConfig
from pycotrip.controller import LayerController
from pycotrip.exceptions import (
    CotripConfigError,
    CotripDecodeError,
    CotripError,
    CotripTransportError,
)
from pycotrip.ingestion.normalize import is_valid_coordinate
from pycotrip.ingestion.parsers import (
    normalize_layer_data,
    parse_dms_signs_to_markers,
    parse_incidents_to_markers,
    parse_planned_events_to_markers,
    parse_road_conditions_to_overlays,
    parse_snow_plows_to_markers,
    parse_weather_stations_to_markers,
    parse_work_zones_to_overlays,
)
from pycotrip.models import (
    Coordinate,
    Failure,
    LayerCache,
    LayerKey,
    MapMarkerData,
    MapOverlayData,
    MarkerLayerType,
    OverlayLayerType,
    RawLayerData,
    Success,
)
from pycotrip.state.lifecycle import AppLifecycle, AppState
from pycotrip.state.store import LayerView

__all__ = [
    "__version__",
    "AppLifecycle",
    "AppState",
    "Coordinate",
    "CotripConfig",
    "CotripConfigError",
    "CotripDecodeError",
    "CotripError",
    "CotripTransportError",
    "Failure",
    "LayerCache",
    "LayerController",
    "LayerKey",
    "LayerView",
    "MapMarkerData",
    "MapOverlayData",
    "MarkerLayerType",
    "OverlayLayerType",
    "RawLayerData",
    "Success",
    "fetch_all_layer_data",
    "fetch_dms_signs",
    "fetch_incidents",
    "fetch_planned_events",
    "fetch_road_conditions",
    "fetch_snow_plows",
    "fetch_weather_stations",
    "fetch_work_zones",
    "is_valid_coordinate",
    "normalize_layer_data",
    "parse_dms_signs_to_markers",
    "parse_incidents_to_markers",
    "parse_planned_events_to_markers",
    "parse_road_conditions_to_overlays",
    "parse_snow_plows_to_markers",
    "parse_weather_stations_to_markers",
    "parse_work_zones_to_overlays",
]
