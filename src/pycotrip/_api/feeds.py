"""COtrip feed endpoints.

One fetcher per feed. Every fetcher is fail-soft: transport, timeout and
decode errors are logged and returned as a :class:`Failure`, never raised.

Endpoints (relative to ``config.base_url``):
  - /roadConditions
  - /incidents
  - /weatherStations
  - /snowPlows
  - /plannedEvents
  - /signs
  - /cwz (WZDx work zones)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pycotrip._transport import Transport
from pycotrip.config import CotripConfig
from pycotrip.exceptions import CotripDecodeError, CotripError
from pycotrip.models._base import LayerKey
from pycotrip.models.layers import RawLayerData
from pycotrip.models.outcome import Failure, FeedOutcome, FeedRecords, Success, records_or_empty

_logger = logging.getLogger(__name__)

_FEED_LABELS: dict[LayerKey, str] = {
    LayerKey.ROAD_CONDITIONS: "road conditions",
    LayerKey.INCIDENTS: "incidents",
    LayerKey.WEATHER_STATIONS: "weather stations",
    LayerKey.SNOW_PLOWS: "snow plows",
    LayerKey.PLANNED_EVENTS: "planned events",
    LayerKey.DMS_SIGNS: "DMS signs",
    LayerKey.WORK_ZONES: "work zones",
}


def _extract_records(body: Any, endpoint: str) -> FeedRecords:
    """Pull the records array out of a decoded response body.

    GeoJSON feeds wrap records in ``features``; a missing ``features`` key
    is an empty feed, not an error. A bare JSON array is taken as-is.
    """
    if isinstance(body, list):
        items = body
    elif isinstance(body, dict):
        items = body.get("features")
        if items is None:
            return []
        if not isinstance(items, list):
            raise CotripDecodeError(
                f"'features' from {endpoint} is {type(items).__name__}, expected list",
                endpoint=endpoint,
            )
    else:
        raise CotripDecodeError(
            f"Unexpected body from {endpoint}: {type(body).__name__}",
            endpoint=endpoint,
        )

    records = [item for item in items if isinstance(item, dict)]
    dropped = len(items) - len(records)
    if dropped:
        _logger.debug("Dropped %d non-object records from %s", dropped, endpoint)
    return records


async def fetch_feed(config: CotripConfig, transport: Transport, layer: LayerKey) -> FeedOutcome:
    """Fetch the raw records of one feed.

    Returns
    -------
    Success or Failure
        ``Success(records)`` on a 2xx JSON response, else ``Failure(reason)``.
        Never raises.
    """
    label = _FEED_LABELS[layer]
    try:
        endpoint = config.endpoint_for(layer.value)
        body = await transport.get_json(endpoint)
        records = _extract_records(body, endpoint)
    except CotripError as exc:
        _logger.warning("Failed to fetch %s: %s", label, exc)
        return Failure(str(exc))
    except Exception as exc:
        _logger.warning("Failed to fetch %s: unexpected %s", label, type(exc).__name__, exc_info=True)
        return Failure(f"{type(exc).__name__}: {exc}")

    _logger.debug("Fetched %s: %d records", label, len(records))
    return Success(records)


async def fetch_road_conditions(config: CotripConfig, transport: Transport) -> FeedOutcome:
    """Fetch road condition segments (GeoJSON LineString features)."""
    return await fetch_feed(config, transport, LayerKey.ROAD_CONDITIONS)


async def fetch_incidents(config: CotripConfig, transport: Transport) -> FeedOutcome:
    """Fetch traffic incidents (GeoJSON MultiPoint features)."""
    return await fetch_feed(config, transport, LayerKey.INCIDENTS)


async def fetch_weather_stations(config: CotripConfig, transport: Transport) -> FeedOutcome:
    """Fetch weather stations (GeoJSON Point features)."""
    return await fetch_feed(config, transport, LayerKey.WEATHER_STATIONS)


async def fetch_snow_plows(config: CotripConfig, transport: Transport) -> FeedOutcome:
    """Fetch snow plow positions.

    Records are bespoke ``avl_location`` objects, not GeoJSON features,
    though the API still delivers them in the ``features`` array.
    """
    return await fetch_feed(config, transport, LayerKey.SNOW_PLOWS)


async def fetch_planned_events(config: CotripConfig, transport: Transport) -> FeedOutcome:
    """Fetch planned events (GeoJSON MultiPoint features)."""
    return await fetch_feed(config, transport, LayerKey.PLANNED_EVENTS)


async def fetch_dms_signs(config: CotripConfig, transport: Transport) -> FeedOutcome:
    """Fetch dynamic message signs (GeoJSON Point features)."""
    return await fetch_feed(config, transport, LayerKey.DMS_SIGNS)


async def fetch_work_zones(config: CotripConfig, transport: Transport) -> FeedOutcome:
    """Fetch WZDx work zones (LineString or MultiPoint features)."""
    return await fetch_feed(config, transport, LayerKey.WORK_ZONES)


_FETCHERS = (
    (LayerKey.ROAD_CONDITIONS, fetch_road_conditions),
    (LayerKey.INCIDENTS, fetch_incidents),
    (LayerKey.WEATHER_STATIONS, fetch_weather_stations),
    (LayerKey.SNOW_PLOWS, fetch_snow_plows),
    (LayerKey.PLANNED_EVENTS, fetch_planned_events),
    (LayerKey.DMS_SIGNS, fetch_dms_signs),
    (LayerKey.WORK_ZONES, fetch_work_zones),
)


async def fetch_all_layer_data(config: CotripConfig, transport: Transport) -> RawLayerData:
    """Fetch every feed concurrently.

    Total latency is that of the slowest feed. A failing feed contributes an
    empty list and an entry in ``failures``; if the fan-in itself fails, the
    result is all-empty with every feed marked failed.
    """
    try:
        outcomes = await asyncio.gather(*(fetcher(config, transport) for _, fetcher in _FETCHERS))
        fields: dict[str, Any] = {}
        failures: dict[LayerKey, str] = {}
        for (layer, _), outcome in zip(_FETCHERS, outcomes, strict=True):
            fields[layer.field_name] = records_or_empty(outcome)
            if isinstance(outcome, Failure):
                failures[layer] = outcome.reason
        data = RawLayerData(**fields, failures=failures)
    except Exception as exc:
        _logger.error("Failed to fetch layer data: %s", exc, exc_info=True)
        return RawLayerData.empty(f"{type(exc).__name__}: {exc}")

    _logger.debug("Fetched layer data: %s (failed: %s)", data.counts(), sorted(failures))
    return data
