"""
Normalizers: canonical names, numeric coercion, biome decoding and the
climate long-to-wide pivot.

Every function returns a new DataFrame; inputs are never modified.
"""

import pandas as pd

from ecomap import config
from ecomap.formulas.biome import BIOME_RULES, decode_biome_series, unknown_biome_codes
from ecomap.loaders import rename_positional
from ecomap.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)

DUPLICATE_POLICIES = ("raise", "last")


def _coerce_numeric(df, columns, source):
    """Coerce *columns* to float, logging values that fail to parse."""
    out = df.copy()
    for col in columns:
        if col not in out.columns:
            continue
        raw = out[col]
        parsed = pd.to_numeric(raw, errors="coerce")
        bad = raw.notna() & parsed.isna()
        if bad.any():
            log.warning(
                "%s: %d non-numeric value(s) in '%s' set to missing: %s",
                source, int(bad.sum()), col, sorted(raw[bad].astype(str).unique())[:5],
            )
        out[col] = parsed.astype(float)
    return out


def normalize_type_names(types):
    """Replace literal '.' with '_' in climate type names."""
    return types.astype(str).str.strip().str.replace(".", "_", regex=False)


def normalize_climate(df, on_duplicate="raise"):
    """Pivot the long climate table to one row per code.

    Parameters
    ----------
    df : pd.DataFrame
        Columns ``code``, ``type``, ``measure``.
    on_duplicate : {"raise", "last"}
        What to do with repeated (code, type) pairs. "raise" rejects the
        table; "last" keeps the last row in file order.

    Returns
    -------
    pd.DataFrame
        ``code`` plus one column per distinct type. Measures that parse
        as numbers become floats; anything else stays text.
    """
    if on_duplicate not in DUPLICATE_POLICIES:
        raise ValueError(
            f"on_duplicate must be one of {DUPLICATE_POLICIES}, got {on_duplicate!r}"
        )

    climate = df[list(config.CLIMATE_REQUIRED_COLUMNS)].copy()
    climate["type"] = normalize_type_names(climate["type"])

    dup_mask = climate.duplicated(["code", "type"], keep=False)
    if dup_mask.any():
        pairs = sorted(set(zip(climate.loc[dup_mask, "code"], climate.loc[dup_mask, "type"])))
        if on_duplicate == "raise":
            raise ValueError(
                f"climate: {len(pairs)} duplicate (code, type) pair(s): {pairs[:10]}"
            )
        log.warning("climate: keeping last value for %d duplicate (code, type) pair(s): %s",
                    len(pairs), pairs[:10])
        climate = climate.drop_duplicates(["code", "type"], keep="last")

    type_order = list(dict.fromkeys(climate["type"]))
    wide = (
        climate.pivot(index="code", columns="type", values="measure")
        .reindex(columns=type_order)
        .reset_index()
    )
    wide.columns.name = None

    numeric_cols = [
        c for c in type_order
        if pd.to_numeric(wide[c], errors="coerce").notna().sum() == wide[c].notna().sum()
    ]
    wide = _coerce_numeric(wide, numeric_cols, "climate")
    log.info("Climate pivoted: %d codes x %d types", len(wide), len(type_order))
    return wide


def normalize_species(df, rules=BIOME_RULES):
    """Canonical taxon-count names, numeric counts and decoded biome labels."""
    species = rename_positional(df, config.SPECIES_POSITIONAL_RENAMES, source="species")
    species = _coerce_numeric(species, config.SPECIES_COUNT_COLUMNS, "species")

    unknown = unknown_biome_codes(species["biome"], rules)
    if unknown:
        log.warning("species: %d biome code(s) not covered by the rules: %s",
                    len(unknown), unknown)
    species["biome"] = decode_biome_series(species["biome"], rules)
    species["ecoregion_name"] = species["ecoregion_name"].str.strip()
    return species


def normalize_ecoregions(df):
    """Numeric geography columns; every row must have coordinates."""
    eco = _coerce_numeric(df, config.ECOREGION_NUMERIC_COLUMNS, "ecoregions")
    missing = eco["longitude"].isna() | eco["latitude"].isna()
    if missing.any():
        raise ValueError(
            "ecoregions: missing coordinates for code(s) "
            f"{sorted(eco.loc[missing, 'code'])}"
        )
    return eco
