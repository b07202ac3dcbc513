"""Data models for pycotrip feeds and map entities."""

from pycotrip.models._base import (
    MARKER_LAYERS,
    OVERLAY_LAYERS,
    CotripBaseModel,
    LayerKey,
    MarkerLayerType,
    OverlayLayerType,
)
from pycotrip.models.layers import LayerCache, RawLayerData
from pycotrip.models.map_data import Coordinate, MapMarkerData, MapOverlayData, RouteCondition
from pycotrip.models.outcome import Failure, FeedOutcome, FeedRecords, Success, records_or_empty

__all__ = [
    "MARKER_LAYERS",
    "OVERLAY_LAYERS",
    "Coordinate",
    "CotripBaseModel",
    "Failure",
    "FeedOutcome",
    "FeedRecords",
    "LayerCache",
    "LayerKey",
    "MapMarkerData",
    "MapOverlayData",
    "MarkerLayerType",
    "OverlayLayerType",
    "RawLayerData",
    "RouteCondition",
    "Success",
    "records_or_empty",
]
