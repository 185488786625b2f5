"""
Pandera DataFrame schemas for the pipeline's validation gates.

Each table the pipeline produces has a declarative schema checking
structure and plausible value ranges.

Usage:
    from ecomap.schemas import WideTableSchema
    WideTableSchema.validate(df)  # raises pa.errors.SchemaError on failure
"""

import pandera as pa
from pandera import Column, Check, DataFrameSchema

from ecomap import config


_LONGITUDE = Column(float, Check.in_range(-180.0, 180.0), nullable=False, coerce=True)
_LATITUDE = Column(float, Check.in_range(-90.0, 90.0), nullable=False, coerce=True)


# ── Source tables ───────────────────────────────────────────────────────

EcoregionSchema = DataFrameSchema(
    columns={
        "code": Column(str, nullable=False, unique=True),
        "longitude": _LONGITUDE,
        "latitude": _LATITUDE,
        # Non-positive areas are reported by the map renderer, not rejected.
        "area_km2": Column(float, nullable=True, coerce=True),
    },
    strict=False,
    coerce=False,
    name="EcoregionSchema",
)

ClimateLongSchema = DataFrameSchema(
    columns={
        "code": Column(str, nullable=False),
        "type": Column(str, Check.str_length(min_value=1), nullable=False),
        "measure": Column(nullable=True),
    },
    strict=False,
    coerce=False,
    name="ClimateLongSchema",
)

SpeciesSchema = DataFrameSchema(
    columns={
        "code": Column(str, nullable=False, unique=True),
        "biome": Column(str, nullable=True),
        "ecoregion_name": Column(str, nullable=True),
        **{
            col: Column(float, Check.greater_than_or_equal_to(0.0), nullable=True, coerce=True)
            for col in config.SPECIES_COUNT_COLUMNS
        },
    },
    strict=False,
    coerce=False,
    name="SpeciesSchema",
)


# ── Pipeline tables ─────────────────────────────────────────────────────

WideTableSchema = DataFrameSchema(
    columns={
        "code": Column(str, nullable=False, unique=True),
        "longitude": _LONGITUDE,
        "latitude": _LATITUDE,
        "ecoregion_name": Column(str, nullable=True),
        "biome": Column(str, nullable=True),
    },
    strict=False,
    coerce=False,
    name="WideTableSchema",
)

LongTableSchema = DataFrameSchema(
    columns={
        "code": Column(str, nullable=False),
        "longitude": _LONGITUDE,
        "latitude": _LATITUDE,
        "category": Column(str, Check.isin(list(config.CATEGORIES)), nullable=False),
        "attribute_name": Column(str, nullable=False),
        "value": Column(nullable=True),
        "value_type": Column(str, Check.isin(list(config.VALUE_TYPES)), nullable=False),
    },
    checks=[
        # One row per (code, category, attribute).
        Check(
            lambda df: ~df.duplicated(["code", "category", "attribute_name"]),
            error="duplicate (code, category, attribute_name) rows",
        ),
    ],
    strict=False,
    coerce=False,
    name="LongTableSchema",
)


# ── Convenience validation function ─────────────────────────────────────

def validate_schema(df, schema, step_name, strict=False):
    """Validate a DataFrame against a Pandera schema.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to validate.
    schema : pa.DataFrameSchema
        Schema to validate against.
    step_name : str
        Pipeline step name for messages.
    strict : bool
        If True, raise on failure. If False, return the warnings.

    Returns
    -------
    list[str]
        Validation warning messages (empty if all pass).

    Raises
    ------
    ValueError
        Only if strict=True and validation fails.
    """
    warnings_list = []

    if df is None:
        msg = f"[{step_name}] DataFrame is None"
        if strict:
            raise ValueError(msg)
        return [msg]

    if len(df) == 0:
        msg = f"[{step_name}] DataFrame is empty (0 rows)"
        if strict:
            raise ValueError(msg)
        return [msg]

    try:
        schema.validate(df, lazy=True)
    except pa.errors.SchemaErrors as exc:
        for failure in exc.failure_cases.itertuples():
            warnings_list.append(
                f"[{step_name}] Schema violation: "
                f"column='{failure.column}' check='{failure.check}' "
                f"failure_case={failure.failure_case}"
            )

        if strict:
            raise ValueError(
                f"[{step_name}] Schema validation failed with "
                f"{len(warnings_list)} errors"
            ) from exc

    return warnings_list
