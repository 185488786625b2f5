"""
Pure domain rules used across the pipeline.

config.py keeps formats, paths and defaults; this package keeps the
rules: biome abbreviation decoding and the area-to-radius conversion.
"""

from ecomap.formulas.biome import (
    BIOME_RULES,
    biome_names,
    decode_biome,
    decode_biome_series,
    unknown_biome_codes,
)
from ecomap.formulas.geometry import (
    M2_PER_KM2,
    is_valid_area,
    radius_from_area,
    radius_series,
)
