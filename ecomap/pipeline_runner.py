#!/usr/bin/env python3
"""
Pipeline runner with validation gates.

Runs load -> normalize -> merge -> redistribute -> long form -> export,
then renders the interactive HTML map and the static overview. Any
failure in the data steps aborts the run; the map steps only warn.

- Pandera schema validation between steps (``--strict-validation`` aborts
  on violations, otherwise they are logged)
- NaN tracking between steps
- PipelineRunResult provenance saved as JSON

Usage:
    python3 -m ecomap.pipeline_runner \\
        --ecoregions data/sample/ecoregions.txt \\
        --climate data/sample/climate.csv \\
        --species data/sample/species.csv \\
        --key data/sample/key.csv --output-dir outputs

    # Map a climate attribute instead of the default selection
    python3 -m ecomap.pipeline_runner --category "Climate Data" --attribute mean_temp
"""

import argparse
import json
import os
import sys
import time

from ecomap import config
from ecomap.logging_config import get_pipeline_logger, setup_logging, set_run_id
from ecomap.merge import codes_outside_merge
from ecomap.pipeline_types import PipelineRunResult
from ecomap.schemas import (
    ClimateLongSchema,
    EcoregionSchema,
    LongTableSchema,
    SpeciesSchema,
    WideTableSchema,
    validate_schema,
)

log = get_pipeline_logger(__name__)


# ── NaN tracking helper ──────────────────────────────────────────────────


def track_nan_counts(df, step_name, prev_nan_counts=None):
    """Count NaNs per column and warn when a column gained NaNs.

    Returns
    -------
    dict
        Column -> NaN count, for columns with at least one NaN.
    """
    if df is None:
        return {}

    nan_counts = {k: int(v) for k, v in df.isna().sum().items() if v > 0}

    if nan_counts:
        log.debug(
            "[%s] NaN counts: %s", step_name, nan_counts,
            extra={"step_name": step_name, "nan_summary": nan_counts},
        )

    for col, count in nan_counts.items():
        prev = (prev_nan_counts or {}).get(col)
        if prev is not None and count > prev:
            log.warning(
                "[%s] NaN count increased for '%s': %d -> %d (+%d)",
                step_name, col, prev, count, count - prev,
            )

    return nan_counts


def _gate(df, schema, step_name, strict, step_result=None):
    """Apply a validation gate; warnings are logged and kept on the step."""
    warnings_list = validate_schema(df, schema, step_name, strict=strict)
    for w in warnings_list:
        log.warning(w)
    if step_result is not None:
        step_result.warnings.extend(warnings_list)
    return warnings_list


def _abort(pipeline_result, step_name, message, start_time):
    log.error("Pipeline aborted at %s: %s", step_name, message)
    pipeline_result.aborted_at = step_name
    pipeline_result.total_time_seconds = time.time() - start_time
    return pipeline_result


# ── Table building ───────────────────────────────────────────────────────


def build_tables(ecoregion_path, climate_path, species_path,
                 on_duplicate="raise", strict_metadata=False):
    """Run the data steps without step tracking and return the tables.

    Errors propagate to the caller. Used by the Streamlit view and tests.

    Returns
    -------
    tuple[pd.DataFrame, pd.DataFrame]
        ``(wide, long)``
    """
    from ecomap.loaders import load_climate, load_ecoregions, load_species
    from ecomap.merge import merge_sources, redistribute_metadata
    from ecomap.normalize import normalize_climate, normalize_ecoregions, normalize_species
    from ecomap.reshape import build_long_table

    climate = normalize_climate(load_climate(climate_path), on_duplicate=on_duplicate)
    ecoregion = normalize_ecoregions(load_ecoregions(ecoregion_path))
    species = normalize_species(load_species(species_path))

    wide = merge_sources(climate, ecoregion, species)
    enriched = redistribute_metadata(climate, ecoregion, species, strict=strict_metadata)
    long = build_long_table(enriched.climate, enriched.ecoregion, enriched.species)
    return wide, long


# ── Pipeline ─────────────────────────────────────────────────────────────


def run_pipeline(args):
    """Run the full pipeline and return its PipelineRunResult.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command-line arguments.
    """
    from ecomap.pipeline_steps import (
        step_build_long,
        step_export,
        step_load_sources,
        step_merge,
        step_normalize,
        step_redistribute,
        step_render_map,
        step_static_overview,
    )

    strict = getattr(args, "strict_validation", False)
    start_time = time.time()
    os.makedirs(args.output_dir, exist_ok=True)

    pipeline_result = PipelineRunResult(
        run_dir=args.output_dir,
        sources={
            "ecoregion": args.ecoregions,
            "climate": args.climate,
            "species": args.species,
            "key": args.key,
        },
    )
    steps = pipeline_result.step_results

    # Step 1: Load
    result, sources = step_load_sources(args.ecoregions, args.climate, args.species, args.key)
    steps.append(result)
    if not result.ok:
        return _abort(pipeline_result, result.step_name, result.error_message, start_time)

    try:
        _gate(sources["climate"], ClimateLongSchema, "load_climate", strict, result)
    except ValueError as e:
        return _abort(pipeline_result, "load_sources", str(e), start_time)

    # Step 2: Normalize
    result, normalized = step_normalize(sources, on_duplicate=args.on_duplicate)
    steps.append(result)
    if not result.ok:
        return _abort(pipeline_result, result.step_name, result.error_message, start_time)

    try:
        _gate(normalized["ecoregion"], EcoregionSchema, "normalize_ecoregions", strict, result)
        _gate(normalized["species"], SpeciesSchema, "normalize_species", strict, result)
    except ValueError as e:
        return _abort(pipeline_result, "normalize", str(e), start_time)

    prev_nan_counts = {}
    for df in normalized.values():
        prev_nan_counts.update(track_nan_counts(df, "normalize"))

    # Step 3: Merge
    result, wide = step_merge(normalized)
    steps.append(result)
    if not result.ok:
        return _abort(pipeline_result, result.step_name, result.error_message, start_time)

    try:
        _gate(wide, WideTableSchema, "merge", strict, result)
    except ValueError as e:
        return _abort(pipeline_result, "merge", str(e), start_time)
    result.nan_summary = track_nan_counts(wide, "merge", prev_nan_counts)
    pipeline_result.wide_rows = len(wide)
    pipeline_result.record_dropped("merge", codes_outside_merge(normalized, wide))

    # Step 4: Redistribute metadata
    result, enriched = step_redistribute(normalized, strict=args.strict_metadata)
    steps.append(result)
    if not result.ok:
        return _abort(pipeline_result, result.step_name, result.error_message, start_time)

    pipeline_result.record_dropped(result.step_name, enriched.dropped)

    # Step 5: Long form
    result, long = step_build_long(enriched)
    steps.append(result)
    if not result.ok:
        return _abort(pipeline_result, result.step_name, result.error_message, start_time)

    pipeline_result.long_rows = len(long)

    try:
        _gate(long, LongTableSchema, "build_long", strict, result)
    except ValueError as e:
        return _abort(pipeline_result, "build_long", str(e), start_time)

    # Step 6: Export
    result, paths = step_export(wide, long, args.output_dir)
    steps.append(result)
    if not result.ok:
        return _abort(pipeline_result, result.step_name, result.error_message, start_time)
    pipeline_result.output_files.extend(paths.values())

    # ── Non-critical steps (log warning, continue on failure) ────────

    if not args.no_map:
        result, render = step_render_map(
            wide, long, args.output_dir,
            category=args.category, attribute=args.attribute, labels=sources["key"],
        )
        steps.append(result)
        if result.ok:
            pipeline_result.output_files.append(result.output_summary["html_path"])
            pipeline_result.map_selection = {
                "category": render.category,
                "attribute": render.attribute,
                "skipped_circles": render.skipped_circles,
            }
        else:
            log.warning("Map rendering failed: %s", result.error_message)

        result, png_path = step_static_overview(wide, args.output_dir)
        steps.append(result)
        if result.ok:
            pipeline_result.output_files.append(png_path)
        else:
            log.warning("Static overview failed: %s", result.error_message)

    pipeline_result.total_time_seconds = time.time() - start_time
    return pipeline_result


def save_pipeline_result(pipeline_result, output_dir):
    """Save PipelineRunResult as JSON for provenance."""
    os.makedirs(output_dir, exist_ok=True)
    result_path = os.path.join(output_dir, config.RUN_RESULT_NAME)
    with open(result_path, "w") as f:
        json.dump(pipeline_result.to_dict(), f, indent=2, default=str)
    log.info("Pipeline result saved: %s", result_path)
    return result_path


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Merge ecoregion, climate and species tables and map them"
    )
    parser.add_argument("--ecoregions", default=config.DEFAULT_ECOREGION_FILE,
                        help="Whitespace-delimited ecoregion table")
    parser.add_argument("--climate", default=config.DEFAULT_CLIMATE_FILE,
                        help="Long-format climate CSV (code,type,measure)")
    parser.add_argument("--species", default=config.DEFAULT_SPECIES_FILE,
                        help="Species-count CSV")
    parser.add_argument("--key", default=None,
                        help="Optional abbreviation key CSV used for map labels")
    parser.add_argument("--output-dir", default=config.DEFAULT_OUTPUT_DIR,
                        dest="output_dir", help="Directory for CSVs, maps and logs")
    parser.add_argument("--category", choices=list(config.CATEGORIES),
                        default=config.DEFAULT_CATEGORY,
                        help="Category selected in the saved map")
    parser.add_argument("--attribute", default=None,
                        help="Attribute selected in the saved map "
                             "(default: first attribute of the category)")
    parser.add_argument("--on-duplicate", choices=["raise", "last"], default="raise",
                        dest="on_duplicate",
                        help="Repeated (code, type) climate rows: reject or keep last")
    parser.add_argument("--strict-metadata", action="store_true", default=False,
                        dest="strict_metadata",
                        help="Abort when a table has codes without coordinates/biome")
    parser.add_argument("--strict-validation", action="store_true", default=False,
                        dest="strict_validation",
                        help="Abort on schema validation failures (default: warn only)")
    parser.add_argument("--no-map", action="store_true", default=False, dest="no_map",
                        help="Skip the HTML map and PNG overview")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    run_id = set_run_id()
    setup_logging(run_dir=args.output_dir)
    log.info("Ecoregion pipeline (run_id=%s)", run_id)

    result = run_pipeline(args)
    save_pipeline_result(result, args.output_dir)

    log.info("Pipeline complete in %.1fs", result.total_time_seconds)
    if result.aborted_at:
        log.error("Pipeline aborted at step '%s'", result.aborted_at)
        return 1
    if result.failed_steps:
        log.warning("Failed steps: %s", [s.step_name for s in result.failed_steps])
    else:
        log.info("All steps succeeded.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
