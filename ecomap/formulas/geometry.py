"""
Area-to-radius conversion for the map's circle overlay.

Each ecoregion is drawn as a circle with the same area as the ecoregion:
``radius_m = sqrt(area_km2 * 1e6 / pi)``. Areas span several orders of
magnitude, so the square root is taken before scaling.
"""

import math

import numpy as np
import pandas as pd

M2_PER_KM2 = 1_000_000.0

# sqrt(1e6 / pi): metres of radius per sqrt(km²).
_RADIUS_SCALE = math.sqrt(M2_PER_KM2) / math.sqrt(math.pi)


def is_valid_area(area_km2):
    """True for finite, strictly positive areas."""
    if area_km2 is None or isinstance(area_km2, bool):
        return False
    try:
        area = float(area_km2)
    except (TypeError, ValueError):
        return False
    return math.isfinite(area) and area > 0.0


def radius_from_area(area_km2):
    """Radius in metres of a circle with the given area in km².

    Returns None for missing, non-numeric, infinite, zero or negative
    areas; callers skip the overlay for those locations.

    >>> round(radius_from_area(100), 1)
    5641.9
    """
    if not is_valid_area(area_km2):
        return None
    return math.sqrt(float(area_km2)) * _RADIUS_SCALE


def radius_series(areas):
    """Vectorized radius_from_area; invalid areas become NaN."""
    values = pd.to_numeric(pd.Series(areas), errors="coerce").astype(float)
    valid = np.isfinite(values) & (values > 0)
    radii = pd.Series(np.nan, index=values.index, dtype=float)
    radii[valid] = np.sqrt(values[valid]) * _RADIUS_SCALE
    return radii
