"""Internal constants shared across the library."""

BASE_URL = "https://data.cotrip.org/api/v1"
USER_AGENT = "pycotrip/1 (+aiohttp)"

#: Per-request timeout in seconds.
REQUEST_TIMEOUT: float = 15.0

#: Interval between automatic refreshes in seconds (5 minutes).
REFRESH_TTL: float = 5 * 60

# ------------------------------------------------------------------
# Endpoint paths, keyed by layer key
# ------------------------------------------------------------------

ENDPOINTS: dict[str, str] = {
    "roadConditions": "/roadConditions",
    "incidents": "/incidents",
    "weatherStations": "/weatherStations",
    "snowPlows": "/snowPlows",
    "plannedEvents": "/plannedEvents",
    "dmsSigns": "/signs",
    "workZones": "/cwz",
}

DEFAULT_ENABLED_LAYERS: frozenset[str] = frozenset({"roadConditions", "incidents"})

# ------------------------------------------------------------------
# Overlay colours
# ------------------------------------------------------------------

ROAD_CONDITION_COLOR = "#002868"
WORK_ZONE_COLOR = "#F59E0B"

# ------------------------------------------------------------------
# Coordinate bounds
# ------------------------------------------------------------------

LONGITUDE_MIN = -180.0
LONGITUDE_MAX = 180.0
LATITUDE_MIN = -90.0
LATITUDE_MAX = 90.0
