"""
Long-form transformer.

Each metadata-enriched table is melted to one row per
(code, attribute_name) with its category, then the three are stacked
into a single long table. Values are kept as a tagged union
(``value_type`` in numeric/text/missing): numbers are parsed from their
literal, everything else stays text.
"""

import math
import numbers

import pandas as pd

from ecomap import config
from ecomap.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)


def classify_value(value):
    """Return ``(value_type, value)`` for one cell.

    >>> classify_value("3.5")
    ('numeric', 3.5)
    >>> classify_value("Tundra")
    ('text', 'Tundra')
    >>> classify_value(float("nan"))
    ('missing', None)
    """
    if value is None:
        return config.VALUE_MISSING, None
    if isinstance(value, bool):
        return config.VALUE_TEXT, str(value)
    if isinstance(value, numbers.Number):
        number = float(value)
        if math.isnan(number):
            return config.VALUE_MISSING, None
        return config.VALUE_NUMERIC, number
    if value is pd.NA or value is pd.NaT:
        return config.VALUE_MISSING, None

    text = str(value).strip()
    if not text:
        return config.VALUE_MISSING, None
    try:
        number = float(text)
    except ValueError:
        return config.VALUE_TEXT, text
    if math.isfinite(number):
        return config.VALUE_NUMERIC, number
    return config.VALUE_TEXT, text


def to_long(df, category, identity_columns=config.IDENTITY_COLUMNS):
    """Melt every non-identity column of *df* and tag it with *category*."""
    missing = [c for c in identity_columns if c not in df.columns]
    if missing:
        raise ValueError(f"{category}: identity column(s) missing: {missing}")

    value_cols = [c for c in df.columns if c not in identity_columns]
    long = df.melt(
        id_vars=list(identity_columns),
        value_vars=value_cols,
        var_name="attribute_name",
        value_name="value",
    )
    typed = [classify_value(v) for v in long["value"]]
    long["value_type"] = [t for t, _ in typed]
    long["value"] = pd.Series([v for _, v in typed], index=long.index, dtype=object)
    long["category"] = category
    return long[list(config.LONG_COLUMNS)]


def combine_long(tables):
    """Stack tagged long tables into one table with a fresh index."""
    frames = [t for t in tables if t is not None]
    if not frames:
        return pd.DataFrame(columns=list(config.LONG_COLUMNS))
    combined = pd.concat(frames, ignore_index=True, sort=False)
    return combined[list(config.LONG_COLUMNS)]


def build_long_table(climate, ecoregion, species):
    """Long table of all three categories (species, climate, ecoregion)."""
    long = combine_long([
        to_long(species, config.CATEGORY_SPECIES),
        to_long(climate, config.CATEGORY_CLIMATE),
        to_long(ecoregion, config.CATEGORY_ECOREGION),
    ])
    counts = long.groupby("category")["attribute_name"].nunique().to_dict()
    log.info("Long table: %d rows; attributes per category: %s", len(long), counts)
    return long


def long_to_climate_triples(long):
    """Climate rows of a long table back as (code, type, measure).

    Missing cells are skipped: a code that never had a given type in the
    source gets a NaN cell from the pivot, not a measurement.
    """
    climate = long[
        (long["category"] == config.CATEGORY_CLIMATE)
        & (long["value_type"] != config.VALUE_MISSING)
    ]
    return (
        climate[["code", "attribute_name", "value"]]
        .rename(columns={"attribute_name": "type", "value": "measure"})
        .reset_index(drop=True)
    )
