"""
AudienceScout configuration constants.

Values can be overridden with AS_* environment variables at import time.
Aggregation functions never read this module implicitly at call time beyond
their keyword defaults; pass an AggregationContext to pin values per request.
"""
import os


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw not in (None, "") else default


# Signal eligibility: a provider row counts only if present and at or above this score
BASE_ELIGIBILITY = _env_float("AS_BASE_ELIGIBILITY", 0.5)

# Anchor/base provider (defines the eligible district universe)
ANCHOR_PROVIDER = os.environ.get("AS_ANCHOR_PROVIDER", "CCS")

# H3 resolutions
H3_RES_MIN = 3
H3_RES_MAX = 7
H3_RES_DEFAULT = _env_int("AS_H3_RES_DEFAULT", 5)

# Extension-mode slider (UI defaults, not algorithmic limits)
CONFIDENCE_SLIDER_MIN = 0.3
CONFIDENCE_SLIDER_MAX = 0.8
CONFIDENCE_SLIDER_STEP = 0.1
CONFIDENCE_THRESHOLD_DEFAULT = _env_float("AS_CONFIDENCE_THRESHOLD", 0.5)

# Validation-mode confidence band cut-offs (applied threshold / validating providers)
CONFIDENCE_BAND_HIGH = 0.7
CONFIDENCE_BAND_MED = 0.4

# Household fallback when the catalog carries no per-district figure
HOUSEHOLDS_PER_DISTRICT_DEFAULT = _env_int("AS_HOUSEHOLDS_PER_DISTRICT", 2500)

# Battle zones: each user-facing ring expands the catchment by this many neighbour hops
BATTLE_ZONE_RING_SCALE = _env_int("AS_RING_SCALE", 5)
BATTLE_ZONE_TOP_CONTESTED = 10

# Deployment regions for the coordinate-order heuristic (decimal degrees)
REGION_BOUNDING_BOXES = {
    "uk": {"west": -10.0, "east": 5.0, "south": 45.0, "north": 65.0},
    "ireland": {"west": -11.0, "east": -5.0, "south": 51.0, "north": 56.0},
    "massachusetts": {"west": -73.6, "east": -69.8, "south": 41.2, "north": 42.9},
}
DEPLOYMENT_REGION = os.environ.get("AS_REGION", "uk")

# Service
API_HOST = os.environ.get("AS_API_HOST", "0.0.0.0")
API_PORT = _env_int("PORT", 5180)
