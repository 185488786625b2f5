"""
Centralized configuration for the ecoregion atlas pipeline.

All source-format contracts, canonical column names, category labels,
paths and map defaults are defined here. Pure domain rules (biome
decoding, area conversion) live in ``ecomap.formulas``.
"""

import os

# ─── PATHS ────────────────────────────────────────────────────────────────
PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_DIR = os.path.dirname(PACKAGE_DIR)

# Overridable with ECOMAP_DATA_DIR.
DATA_DIR = os.environ.get(
    "ECOMAP_DATA_DIR", os.path.join(PROJECT_DIR, "data", "sample")
)
DEFAULT_OUTPUT_DIR = os.path.join(PROJECT_DIR, "outputs")

DEFAULT_ECOREGION_FILE = os.path.join(DATA_DIR, "ecoregions.txt")
DEFAULT_CLIMATE_FILE = os.path.join(DATA_DIR, "climate.csv")
DEFAULT_SPECIES_FILE = os.path.join(DATA_DIR, "species.csv")
DEFAULT_KEY_FILE = os.path.join(DATA_DIR, "key.csv")

# ─── SOURCE FORMATS ───────────────────────────────────────────────────────
# Human-readable format descriptions used in loader error messages.
SOURCE_FORMATS = {
    "ecoregions": "whitespace-delimited text with a header row "
                  "(code, longitude, latitude, area, elevation, 6 climate/terrain columns)",
    "climate": "CSV with header 'code,type,measure'",
    "species": "CSV with header 'code,biome,ecoregion_name,<4 taxon counts>,total'",
    "key": "CSV with two columns: abbreviation, meaning",
}

KEY_COLUMN = "code"

# Header aliases mapped by name after snake-casing.
ECOREGION_COLUMN_ALIASES = {
    "long": "longitude",
    "lon": "longitude",
    "lng": "longitude",
    "lat": "latitude",
    "area": "area_km2",
    "area_km": "area_km2",
    "elev": "elevation",
}

# Positional renames: 1-indexed position -> (accepted source headers, canonical).
# The source file is laid out positionally; a header that is neither an
# accepted source name nor already canonical fails the load.
ECOREGION_POSITIONAL_RENAMES = {
    6: (("rain_s", "rainfall_s", "rain_south"), "rain_south"),
    7: (("rain_w", "rainfall_w", "rain_west"), "rain_west"),
    8: (("temp_s", "temperature_s", "temp_south"), "temp_south"),
    9: (("temp_w", "temperature_w", "temp_west"), "temp_west"),
    10: (("patch", "patches", "patch_num", "n_patches"), "patch_num"),
    11: (("mad", "mad_elev", "elev_mad"), "mad_elev"),
}

SPECIES_POSITIONAL_RENAMES = {
    4: (("bird", "birds", "bird_num"), "bird_num"),
    5: (("mammal", "mammals", "mammal_num"), "mammal_num"),
    6: (("reptile", "reptiles", "reptile_num"), "reptile_num"),
    7: (("amphibian", "amphibians", "amphibian_num"), "amphibian_num"),
    8: (("total", "total_num", "total_species"), "total_num"),
}

CLIMATE_REQUIRED_COLUMNS = ("code", "type", "measure")
SPECIES_REQUIRED_COLUMNS = ("code", "biome", "ecoregion_name")
ECOREGION_REQUIRED_COLUMNS = ("code", "longitude", "latitude", "area_km2")

ECOREGION_NUMERIC_COLUMNS = (
    "longitude", "latitude", "area_km2", "elevation",
    "rain_south", "rain_west", "temp_south", "temp_west",
    "patch_num", "mad_elev",
)
SPECIES_COUNT_COLUMNS = (
    "bird_num", "mammal_num", "reptile_num", "amphibian_num", "total_num",
)

# ─── LONG FORM ────────────────────────────────────────────────────────────
IDENTITY_COLUMNS = ("ecoregion_name", "code", "biome", "longitude", "latitude")

CATEGORY_SPECIES = "Species Data"
CATEGORY_CLIMATE = "Climate Data"
CATEGORY_ECOREGION = "Ecoregion Data"
CATEGORIES = (CATEGORY_SPECIES, CATEGORY_CLIMATE, CATEGORY_ECOREGION)

VALUE_NUMERIC = "numeric"
VALUE_TEXT = "text"
VALUE_MISSING = "missing"
VALUE_TYPES = (VALUE_NUMERIC, VALUE_TEXT, VALUE_MISSING)

LONG_COLUMNS = (
    "code", "ecoregion_name", "biome", "longitude", "latitude",
    "category", "attribute_name", "value", "value_type",
)

# ─── OUTPUTS ──────────────────────────────────────────────────────────────
WIDE_CSV_NAME = "ecoregions_wide.csv"
LONG_CSV_NAME = "ecoregions_long.csv"
MAP_HTML_NAME = "ecoregions_map.html"
STATIC_MAP_NAME = "ecoregions_overview.png"
RUN_RESULT_NAME = "pipeline_run.json"

# ─── MAP PARAMETERS ───────────────────────────────────────────────────────
DEFAULT_CATEGORY = CATEGORY_SPECIES
MAP_TILES = "OpenStreetMap"
MAP_ZOOM_START = 4
MAP_COLORMAP = "viridis"
MAP_DEFAULT_CIRCLE_COLOR = "#3186cc"
MAP_CIRCLE_OPACITY = 0.35
POPUP_MAX_WIDTH = 320
NO_DATA_LABEL = "No data"
MAP_DPI = 300

# ─── LOGGING ──────────────────────────────────────────────────────────────
LOG_DIR_NAME = "logs"
LOG_FILE_NAME = "pipeline.log"
RUN_LOG_NAME = "pipeline.jsonl"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 3
CONSOLE_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
