"""
Configuration: state centroids, shipping tiers, trend thresholds, cache defaults.

STATE_COORDS maps each US state code to its approximate geographic centre.
SHIPPING_TIERS maps distance buckets (miles from HQ) to day estimates.
"""

# ---------------------------------------------------------------------------
# Geography
# ---------------------------------------------------------------------------
EARTH_RADIUS_MILES = 3959

# Company headquarters (Florida); every shipment leg is measured from here
HQ_COORDS: tuple[float, float] = (27.766279, -81.686783)

STATE_COORDS: dict[str, tuple[float, float]] = {
    "AL": (32.806671, -86.791130), "AK": (61.370716, -152.404419),
    "AZ": (33.729759, -111.431221), "AR": (34.969704, -92.373123),
    "CA": (36.116203, -119.681564), "CO": (39.059811, -105.311104),
    "CT": (41.597782, -72.755371), "DE": (39.318523, -75.507141),
    "FL": (27.766279, -81.686783), "GA": (33.040619, -83.643074),
    "HI": (21.094318, -157.498337), "ID": (44.240459, -114.478828),
    "IL": (40.349457, -88.986137), "IN": (39.849426, -86.258278),
    "IA": (42.011539, -93.210526), "KS": (38.526600, -96.726486),
    "KY": (37.668140, -84.670067), "LA": (31.169546, -91.867805),
    "ME": (44.693947, -69.381927), "MD": (39.063946, -76.802101),
    "MA": (42.230171, -71.530106), "MI": (43.326618, -84.536095),
    "MN": (45.694454, -93.900192), "MS": (32.741646, -89.678696),
    "MO": (38.456085, -92.288368), "MT": (46.921925, -110.454353),
    "NE": (41.125370, -98.268082), "NV": (38.313515, -117.055374),
    "NH": (43.452492, -71.563896), "NJ": (40.298904, -74.521011),
    "NM": (34.840515, -106.248482), "NY": (42.165726, -74.948051),
    "NC": (35.630066, -79.806419), "ND": (47.528912, -99.784012),
    "OH": (40.388783, -82.764915), "OK": (35.565342, -96.928917),
    "OR": (44.572021, -122.070938), "PA": (40.590752, -77.209755),
    "RI": (41.680893, -71.511780), "SC": (33.856892, -80.945007),
    "SD": (44.299782, -99.438828), "TN": (35.747845, -86.692345),
    "TX": (31.054487, -97.563461), "UT": (40.150032, -111.862434),
    "VT": (44.045876, -72.710686), "VA": (37.769337, -78.169968),
    "WA": (47.400902, -121.490494), "WV": (38.491226, -80.954453),
    "WI": (44.268543, -89.616508), "WY": (42.755966, -107.302490),
}

# ---------------------------------------------------------------------------
# Shipping tiers
# ---------------------------------------------------------------------------
# (upper distance bound in miles, exclusive) -> {avg, min, max} days.
# The last tier has no upper bound.
SHIPPING_TIERS: list[tuple[float, dict[str, float]]] = [
    (400, {"avg": 1.5, "min": 1, "max": 2}),
    (900, {"avg": 2.5, "min": 2, "max": 3}),
    (1500, {"avg": 3.5, "min": 3, "max": 4}),
    (float("inf"), {"avg": 5, "min": 4, "max": 6}),
]

# Conservative estimate when a shop's state cannot be resolved
DEFAULT_SHIPPING: dict[str, float] = {"avg": 3, "min": 2, "max": 4}

# ---------------------------------------------------------------------------
# Order classification
# ---------------------------------------------------------------------------
# A status containing any of these substrings counts as completed
COMPLETED_STATUS_MARKERS = ("COMPLETED", "RECEIVED")

UNKNOWN_SHOP = "Unknown"
UNKNOWN_STATUS = "UNKNOWN"

# ---------------------------------------------------------------------------
# Trend detection
# ---------------------------------------------------------------------------
TREND_RECENT_DAYS = 30
TREND_OLDER_DAYS = 90
TREND_MIN_SAMPLES = 2
TREND_IMPROVING_RATIO = 0.9
TREND_DECLINING_RATIO = 1.1

# ---------------------------------------------------------------------------
# Cache defaults
# ---------------------------------------------------------------------------
DEFAULT_MAX_SIZE = 100
DEFAULT_MAX_MEMORY_BYTES = 50 * 1024 * 1024
DEFAULT_TTL_MS = 10 * 60 * 1000
WARM_TOP_SHOPS = 10
DEFAULT_WARM_WORKERS = 4

# ---------------------------------------------------------------------------
# Repository boundary
# ---------------------------------------------------------------------------
# Mapping from repository column headers to RepairOrderRecord fields
RECORD_COLUMN_MAP: dict[str, str] = {
    "RO #": "ro_number",
    "Date Made": "date_made",
    "Shop Name": "shop_name",
    "Date Dropped Off": "date_dropped_off",
    "Estimated Cost": "estimated_cost",
    "Final Cost": "final_cost",
    "Current Status": "current_status",
    "Current Status Date": "current_status_date",
}

RECORD_DATE_FIELDS = ("date_made", "date_dropped_off", "current_status_date")
RECORD_COST_FIELDS = ("estimated_cost", "final_cost")
