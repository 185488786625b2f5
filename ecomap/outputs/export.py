"""
CSV export of the wide and long tables.

Both files carry a header row and a leading row-index column, and are
overwritten on every run.
"""

import os

from ecomap import config
from ecomap.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)


def export_table(df, path):
    """Write *df* to *path* (with its row index) and return the path."""
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    df.to_csv(path, index=True)
    log.info("Saved %d rows: %s", len(df), path)
    return path


def export_tables(wide, long, output_dir):
    """Write the wide and long tables into *output_dir*.

    Returns
    -------
    dict
        ``{"wide": path, "long": path}``
    """
    return {
        "wide": export_table(wide, os.path.join(output_dir, config.WIDE_CSV_NAME)),
        "long": export_table(long, os.path.join(output_dir, config.LONG_CSV_NAME)),
    }
