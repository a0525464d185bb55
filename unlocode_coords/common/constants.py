"""Application constants."""

USER_AGENT = "unlocode-coordinates/1.0 (+research; contact: configured-email)"
STAGES = (
    "detect",
    "validate",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20

REGISTRY_URL_TEMPLATE = "https://unlocode.info/{locode}"
NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"
OSM_BROWSE_URL = "https://www.openstreetmap.org"
WIKIDATA_SPARQL_URL = "https://query.wikidata.org/sparql"

SCRAPE_BY_REGION = "byRegion"
SCRAPE_BY_CITY = "byCity"
SCRAPE_TYPES = (SCRAPE_BY_REGION, SCRAPE_BY_CITY)

EARTH_RADIUS_KM = 6371.0
DEFAULT_MAX_DISTANCE_KM = 100.0
VALIDATED_DISTANCE_KM = 100.0
CLOSE_DISTANCE_KM = 25.0
FAR_DISTANCE_KM = 1000.0
SMALL_VILLAGE_PLACE_RANK = 19

JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "locode",
    "country",
    "event",
    "status",
    "scrape_type",
    "distance_km",
    "error_code",
    "message",
)
