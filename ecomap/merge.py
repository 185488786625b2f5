"""
Merging the normalized sources and redistributing location metadata.

merge_sources() builds the wide table (codes present in all three
sources). redistribute_metadata() copies coordinates and biome labels
back into each normalized table so every table can be melted to long
form on its own.
"""

from dataclasses import dataclass, field
from itertools import combinations

import pandas as pd

from ecomap import config
from ecomap.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)

KEY = config.KEY_COLUMN
COORDINATE_COLUMNS = (KEY, "longitude", "latitude")
BIOME_METADATA_COLUMNS = (KEY, "ecoregion_name", "biome")


def _check_unique_codes(df, name):
    dupes = df.loc[df[KEY].duplicated(), KEY]
    if not dupes.empty:
        raise ValueError(
            f"{name}: '{KEY}' is not unique; repeated codes {sorted(dupes.unique())[:10]}"
        )


def overlap_report(sources):
    """Pairwise code-overlap counts between named source tables."""
    codes = {name: set(df[KEY]) for name, df in sources.items()}
    report = {name: {"rows": len(c)} for name, c in codes.items()}
    for a, b in combinations(codes, 2):
        n = len(codes[a] & codes[b])
        report[a][f"overlap_{b}"] = n
        report[b][f"overlap_{a}"] = n
    return report


def _zero_overlap_message(sources):
    report = overlap_report(sources)
    isolated = [
        name for name, stats in report.items()
        if stats["rows"] == 0
        or all(v == 0 for k, v in stats.items() if k.startswith("overlap_"))
    ]
    lines = [f"  {name}: {stats}" for name, stats in report.items()]
    culprit = (
        f"source(s) with zero overlap: {isolated}" if isolated
        else "no source is disjoint, but no code is shared by all three sources"
    )
    return "merge produced 0 rows; " + culprit + "\n" + "\n".join(lines)


def codes_outside_merge(sources, wide):
    """``{source: sorted codes}`` of each source's codes missing from *wide*."""
    kept = set(wide[KEY])
    return {name: sorted(set(df[KEY]) - kept) for name, df in sources.items()}


def merge_sources(climate, ecoregion, species):
    """Inner-join climate, ecoregion and species on ``code``.

    Raises
    ------
    ValueError
        If a source has repeated codes, the sources share a non-key column,
        or the join leaves no rows.
    """
    sources = {"climate": climate, "ecoregion": ecoregion, "species": species}
    for name, df in sources.items():
        _check_unique_codes(df, name)

    seen = {}
    for name, df in sources.items():
        for col in df.columns:
            if col != KEY and col in seen:
                raise ValueError(
                    f"column '{col}' appears in both {seen[col]} and {name}; "
                    "rename it before merging"
                )
            seen.setdefault(col, name)

    wide = (
        climate.merge(ecoregion, on=KEY, how="inner", validate="one_to_one")
        .merge(species, on=KEY, how="inner", validate="one_to_one")
    )
    if wide.empty:
        raise ValueError(_zero_overlap_message(sources))

    for name, dropped in codes_outside_merge(sources, wide).items():
        if dropped:
            log.warning(
                "merge: %d code(s) from %s not present in all sources: %s",
                len(dropped), name, dropped[:20],
                extra={"source": name, "dropped_codes": dropped},
            )

    wide = wide.sort_values(KEY, kind="stable").reset_index(drop=True)
    log.info("Merged wide table: %d rows x %d columns", *wide.shape)
    return wide


# ── Metadata redistribution ─────────────────────────────────────────────

def extract_coordinates(ecoregion):
    """(code, longitude, latitude) side table."""
    return ecoregion[list(COORDINATE_COLUMNS)].copy()


def extract_biome_metadata(species):
    """(code, ecoregion_name, biome) side table."""
    return species[list(BIOME_METADATA_COLUMNS)].copy()


@dataclass
class RedistributionResult:
    """The three metadata-enriched tables plus codes dropped per table."""

    climate: pd.DataFrame
    ecoregion: pd.DataFrame
    species: pd.DataFrame
    dropped: dict = field(default_factory=dict)

    @property
    def warnings(self):
        return [
            f"{name}: {len(codes)} row(s) without location metadata dropped: {codes[:10]}"
            for name, codes in self.dropped.items() if codes
        ]


def attach_metadata(df, side, name, strict=False):
    """Left-join *side* onto *df* by code, never dropping rows silently.

    Returns the enriched table and the list of codes that had no match.
    Unmatched rows raise with ``strict=True``; otherwise they are
    dropped and logged.
    """
    side_cols = [c for c in side.columns if c != KEY]
    base = df.drop(columns=[c for c in side_cols if c in df.columns])
    merged = base.merge(side, on=KEY, how="left", validate="many_to_one",
                        indicator=True)
    unmatched_mask = merged["_merge"] == "left_only"
    unmatched = sorted(merged.loc[unmatched_mask, KEY].unique())

    if unmatched:
        msg = f"{name}: {len(unmatched)} code(s) have no location metadata: {unmatched[:10]}"
        if strict:
            raise ValueError(msg)
        log.warning(msg, extra={"source": name, "dropped_codes": unmatched})

    merged = merged.loc[~unmatched_mask].drop(columns="_merge").reset_index(drop=True)
    return merged, unmatched


def redistribute_metadata(climate, ecoregion, species, strict=False):
    """Give every normalized table coordinates and biome metadata.

    species gets coordinates, ecoregion gets biome metadata, climate gets
    both.

    Parameters
    ----------
    climate, ecoregion, species : pd.DataFrame
        Normalized (pre-merge) tables.
    strict : bool
        Raise instead of dropping rows whose code is missing from a side
        table.

    Returns
    -------
    RedistributionResult
    """
    coordinates = extract_coordinates(ecoregion)
    biome_metadata = extract_biome_metadata(species)
    _check_unique_codes(coordinates, "coordinates")
    _check_unique_codes(biome_metadata, "biome_metadata")

    dropped = {}
    species_out, dropped["species"] = attach_metadata(
        species, coordinates, "species", strict=strict)
    ecoregion_out, dropped["ecoregion"] = attach_metadata(
        ecoregion, biome_metadata, "ecoregion", strict=strict)
    climate_out, missing_biome = attach_metadata(
        climate, biome_metadata, "climate", strict=strict)
    climate_out, missing_coords = attach_metadata(
        climate_out, coordinates, "climate", strict=strict)
    dropped["climate"] = sorted(set(missing_biome) | set(missing_coords))

    return RedistributionResult(
        climate=climate_out,
        ecoregion=ecoregion_out,
        species=species_out,
        dropped=dropped,
    )
