"""
Biome abbreviation decoding.

Source files label each ecoregion with a short biome code ("TrM", "TeB",
"G", ...). Codes are expanded with an explicit ORDERED list of
(pattern, replacement) rules. Several patterns are substrings of others
("D" is contained in "TrD" and "DXS", "G" in "TrG"), so the specific
multi-letter codes are listed first and the loose patterns last.

Rules are applied in a single pass: the first rule whose pattern matches
rewrites the value and no later rule sees the result. Without that, a
loose rule such as ``Ma`` would re-substitute inside text produced by an
earlier rule.
"""

import re

import pandas as pd


# (pattern, replacement); order is significant.
BIOME_RULES = (
    # Tropical and subtropical forests
    ("TrM", "Tropical Moist Forest"),
    ("TrD", "Tropical Deciduous Forest"),
    ("TrC", "Tropical Coniferous Forest"),
    # Temperate forests
    ("TeB", "Temperate Broadleaf Forest"),
    ("TeC", "Temperate Coniferous Forest"),
    ("Bo", "Boreal Forest"),
    # Grasslands, savannas and shrublands
    ("TrG", "Tropical Grasslands"),
    ("TeG", "Temperate Grasslands"),
    ("FG", "Flooded Grasslands"),
    ("MoG", "Montane Grasslands"),
    ("Tu", "Tundra"),
    ("MeF", "Mediterranean Forest"),
    ("DXS", "Deserts and Xeric Shrublands"),
    # Loose patterns: must stay last.
    ("^G", "Grasslands"),
    ("^D", "Deserts"),
    ("Ma", "Mangroves"),
)

_COMPILED = None


def _compiled(rules):
    global _COMPILED
    if rules is BIOME_RULES:
        if _COMPILED is None:
            _COMPILED = tuple((re.compile(p), r) for p, r in BIOME_RULES)
        return _COMPILED
    return tuple((re.compile(p), r) for p, r in rules)


def biome_names(rules=BIOME_RULES):
    """Full biome names produced by a rule list."""
    return {replacement for _, replacement in rules}


def decode_biome(value, rules=BIOME_RULES):
    """Expand one biome abbreviation.

    Returns missing values unchanged, leaves already-expanded names alone
    (so decoding is idempotent) and returns codes no rule matches as-is.

    >>> decode_biome("TrM")
    'Tropical Moist Forest'
    """
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return value
    text = str(value).strip()
    if text in biome_names(rules):
        return text
    for pattern, replacement in _compiled(rules):
        if pattern.search(text):
            return pattern.sub(replacement, text, count=1)
    return text


def decode_biome_series(series, rules=BIOME_RULES):
    """Vectorized decode_biome over a Series (returns a new Series)."""
    return series.map(lambda v: decode_biome(v, rules))


def unknown_biome_codes(series, rules=BIOME_RULES):
    """Distinct non-missing values that no rule recognises."""
    known = biome_names(rules)
    compiled = _compiled(rules)
    unknown = []
    for value in series.dropna().astype(str).str.strip().unique():
        if value in known:
            continue
        if not any(pattern.search(value) for pattern, _ in compiled):
            unknown.append(value)
    return sorted(unknown)
