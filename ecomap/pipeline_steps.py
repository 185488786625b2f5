"""
Pipeline step functions.

Each function is a discrete, testable step with explicit inputs and
outputs. Timing, error capture and logging are handled by ``run_step()``.
"""

import os

from ecomap import config
from ecomap.logging_config import get_pipeline_logger
from ecomap.step_runner import run_step

log = get_pipeline_logger(__name__)


def _shape(df):
    return {"rows": len(df), "columns": df.shape[1]}


def step_load_sources(ecoregion_path, climate_path, species_path, key_path=None):
    """Load the three sources and, if given, the abbreviation key."""
    from ecomap.loaders import (
        load_abbreviation_key,
        load_climate,
        load_ecoregions,
        load_species,
    )

    def _work():
        sources = {
            "ecoregion": load_ecoregions(ecoregion_path),
            "climate": load_climate(climate_path),
            "species": load_species(species_path),
        }
        sources["key"] = load_abbreviation_key(key_path) if key_path else {}
        return sources

    return run_step(
        "load_sources", _work,
        input_summary={
            "ecoregion": ecoregion_path,
            "climate": climate_path,
            "species": species_path,
            "key": key_path,
        },
        output_summary_fn=lambda s: {
            **{name: _shape(s[name]) for name in ("ecoregion", "climate", "species")},
            "key_entries": len(s["key"]),
        },
    )


def step_normalize(sources, on_duplicate="raise"):
    """Canonical names, numeric coercion, biome decoding, climate pivot."""
    from ecomap.normalize import normalize_climate, normalize_ecoregions, normalize_species

    def _work():
        return {
            "climate": normalize_climate(sources["climate"], on_duplicate=on_duplicate),
            "ecoregion": normalize_ecoregions(sources["ecoregion"]),
            "species": normalize_species(sources["species"]),
        }

    return run_step(
        "normalize", _work,
        input_summary={"on_duplicate": on_duplicate},
        output_summary_fn=lambda t: {name: _shape(df) for name, df in t.items()},
    )


def step_merge(normalized):
    """Inner join of the three normalized tables into the wide table."""
    from ecomap.merge import merge_sources

    return run_step(
        "merge", merge_sources,
        normalized["climate"], normalized["ecoregion"], normalized["species"],
        input_summary={name: len(df) for name, df in normalized.items()},
    )


def step_redistribute(normalized, strict=False):
    """Copy coordinates and biome metadata back into each normalized table."""
    from ecomap.merge import redistribute_metadata

    return run_step(
        "redistribute_metadata", redistribute_metadata,
        normalized["climate"], normalized["ecoregion"], normalized["species"],
        strict=strict,
        input_summary={"strict": strict},
        output_summary_fn=lambda r: {
            "climate": len(r.climate),
            "ecoregion": len(r.ecoregion),
            "species": len(r.species),
        },
        warnings_fn=lambda r: r.warnings,
    )


def step_build_long(enriched):
    """Melt and stack the enriched tables into the long table."""
    from ecomap.reshape import build_long_table

    return run_step(
        "build_long", build_long_table,
        enriched.climate, enriched.ecoregion, enriched.species,
        output_summary_fn=lambda long: {
            "rows": len(long),
            "attributes": int(long["attribute_name"].nunique()),
            "value_types": long["value_type"].value_counts().to_dict(),
        },
    )


def step_export(wide, long, output_dir):
    """Write the wide and long CSVs."""
    from ecomap.outputs.export import export_tables

    return run_step(
        "export", export_tables, wide, long, output_dir,
        input_summary={"wide_rows": len(wide), "long_rows": len(long)},
        output_summary_fn=lambda paths: paths,
    )


def step_render_map(wide, long, output_dir, category=config.DEFAULT_CATEGORY,
                    attribute=None, labels=None):
    """Save the interactive map for one selection as HTML."""
    from ecomap.outputs.interactive_map import render_map_html

    path = os.path.join(output_dir, config.MAP_HTML_NAME)

    return run_step(
        "render_map", render_map_html, wide, long, path,
        category=category, attribute=attribute, labels=labels,
        input_summary={"category": category, "attribute": attribute},
        output_summary_fn=lambda r: {
            "html_path": path,
            "attribute": r.attribute,
            "skipped_circles": len(r.skipped_circles),
        },
        warnings_fn=lambda r: r.warnings,
    )


def step_static_overview(wide, output_dir):
    """Save the static PNG overview."""
    from ecomap.outputs.static_map import render_overview

    return run_step(
        "static_overview", render_overview, wide,
        os.path.join(output_dir, config.STATIC_MAP_NAME),
        output_summary_fn=lambda p: {"png_path": p},
    )
