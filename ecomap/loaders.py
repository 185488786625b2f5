"""
Loaders for the three raw sources and the abbreviation key.

Loaders are structural only: they check that the file exists and is
well-formed, read every cell as text, and give columns their canonical
names. Numeric coercion happens in ``ecomap.normalize``.

A malformed file aborts the run: the error names the file, the line and
the expected format. There is no partial recovery.
"""

import csv
import os
import re

import pandas as pd

from ecomap import config
from ecomap.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)


# ── Header handling ─────────────────────────────────────────────────────

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_NON_ALNUM = re.compile(r"[^0-9a-zA-Z]+")


def to_snake_case(name):
    """Normalize a header to snake_case.

    >>> to_snake_case("Ecoregion Name")
    'ecoregion_name'
    >>> to_snake_case("rain.S")
    'rain_s'
    >>> to_snake_case("totalNum")
    'total_num'
    """
    text = _CAMEL_BOUNDARY.sub("_", str(name).strip())
    text = _NON_ALNUM.sub("_", text)
    return text.strip("_").lower()


def snake_case_columns(df, source="table"):
    """Return a copy of *df* with snake_case headers; duplicates are an error."""
    renamed = [to_snake_case(c) for c in df.columns]
    seen = set()
    dupes = sorted({c for c in renamed if c in seen or seen.add(c)})
    if dupes:
        raise ValueError(
            f"{source}: headers collide after normalization: {dupes}"
        )
    out = df.copy()
    out.columns = renamed
    return out


def rename_positional(df, renames, source="table"):
    """Rename columns by 1-indexed position, checking the header found there.

    Parameters
    ----------
    df : pd.DataFrame
        Table with snake_case headers.
    renames : dict[int, tuple[tuple[str, ...], str]]
        Position -> (accepted source headers, canonical name).
    source : str
        File or table name used in error messages.

    Raises
    ------
    ValueError
        If the table is too narrow, or the header at a position is neither
        an accepted source name nor the canonical name already.
    """
    columns = list(df.columns)
    needed = max(renames) if renames else 0
    if len(columns) < needed:
        raise ValueError(
            f"{source}: expected at least {needed} columns, found "
            f"{len(columns)} ({columns})"
        )

    mapping = {}
    for position, (accepted, canonical) in sorted(renames.items()):
        found = columns[position - 1]
        if found != canonical and found not in accepted:
            raise ValueError(
                f"{source}: column {position} is '{found}', expected one of "
                f"{sorted(set(accepted) | {canonical})}"
            )
        mapping[found] = canonical

    out = df.rename(columns=mapping)
    if out.columns.duplicated().any():
        dupes = sorted(set(out.columns[out.columns.duplicated()]))
        raise ValueError(f"{source}: duplicate columns after rename: {dupes}")
    return out


def require_columns(df, required, source="table"):
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(
            f"{source}: missing required column(s) {missing}; "
            f"found {list(df.columns)}"
        )


# ── Structural checks ───────────────────────────────────────────────────

def _check_exists(path, kind):
    if not os.path.isfile(path):
        raise FileNotFoundError(
            f"{kind} file not found: {path} (expected {config.SOURCE_FORMATS[kind]})"
        )


def _check_field_counts(path, kind, whitespace=False):
    """Raise if any data row has a different field count from the header."""
    with open(path, newline="", encoding="utf-8") as f:
        if whitespace:
            rows = ((n, line.split()) for n, line in enumerate(f, start=1))
        else:
            rows = enumerate(csv.reader(f), start=1)

        expected = None
        n_rows = 0
        for line_no, fields in rows:
            if not fields:
                continue
            if expected is None:
                expected = len(fields)
                continue
            n_rows += 1
            if len(fields) != expected:
                raise ValueError(
                    f"{path}: line {line_no} has {len(fields)} fields, "
                    f"header has {expected} "
                    f"(expected {config.SOURCE_FORMATS[kind]})"
                )

    if expected is None:
        raise ValueError(
            f"{path}: file is empty (expected {config.SOURCE_FORMATS[kind]})"
        )
    return n_rows


def _read_text_table(path, kind, whitespace=False):
    _check_exists(path, kind)
    n_rows = _check_field_counts(path, kind, whitespace=whitespace)
    read_kwargs = {"sep": r"\s+"} if whitespace else {}
    df = pd.read_csv(path, dtype=str, skip_blank_lines=True, **read_kwargs)
    log.info("Loaded %s: %d rows x %d columns from %s",
             kind, len(df), df.shape[1], path)
    if len(df) != n_rows:
        raise ValueError(
            f"{path}: parsed {len(df)} rows but counted {n_rows} data lines"
        )
    return df


def _strip_codes(df, source):
    out = df.copy()
    out[config.KEY_COLUMN] = out[config.KEY_COLUMN].str.strip()
    if out[config.KEY_COLUMN].isna().any() or (out[config.KEY_COLUMN] == "").any():
        raise ValueError(f"{source}: rows with an empty '{config.KEY_COLUMN}'")
    return out


# ── Public loaders ──────────────────────────────────────────────────────

def load_ecoregions(path):
    """Load the whitespace-delimited ecoregion table.

    Headers are snake-cased, known aliases mapped by name (``long`` ->
    ``longitude`` ...), and columns 6-11 renamed to the canonical
    climate/terrain names after checking the source header at each
    position.
    """
    df = _read_text_table(path, "ecoregions", whitespace=True)
    df = snake_case_columns(df, source=path)
    df = df.rename(columns={
        c: config.ECOREGION_COLUMN_ALIASES[c]
        for c in df.columns if c in config.ECOREGION_COLUMN_ALIASES
    })
    df = rename_positional(df, config.ECOREGION_POSITIONAL_RENAMES, source=path)
    require_columns(df, config.ECOREGION_REQUIRED_COLUMNS, source=path)
    return _strip_codes(df, path)


def load_climate(path):
    """Load the long-format climate CSV (``code,type,measure``)."""
    df = _read_text_table(path, "climate")
    df = snake_case_columns(df, source=path)
    require_columns(df, config.CLIMATE_REQUIRED_COLUMNS, source=path)
    df = _strip_codes(df, path)
    df["type"] = df["type"].str.strip()
    return df


def load_species(path):
    """Load the species-count CSV with snake_case headers."""
    df = _read_text_table(path, "species")
    df = snake_case_columns(df, source=path)
    require_columns(df, config.SPECIES_REQUIRED_COLUMNS, source=path)
    return _strip_codes(df, path)


def load_abbreviation_key(path):
    """Load the two-column abbreviation key as an ordered dict.

    Keys are stripped abbreviations; a repeated abbreviation keeps its
    last meaning and is logged.
    """
    df = _read_text_table(path, "key")
    if df.shape[1] != 2:
        raise ValueError(
            f"{path}: expected 2 columns, found {df.shape[1]} "
            f"(expected {config.SOURCE_FORMATS['key']})"
        )
    key = {}
    for abbrev, meaning in df.itertuples(index=False, name=None):
        if pd.isna(abbrev):
            continue
        abbrev = str(abbrev).strip()
        if abbrev in key:
            log.warning("%s: abbreviation '%s' defined twice", path, abbrev)
        key[abbrev] = "" if pd.isna(meaning) else str(meaning).strip()
    return key
