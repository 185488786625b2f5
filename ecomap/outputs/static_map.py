"""
Static PNG overview of the merged ecoregions.

Locations are plotted by coordinates, coloured by biome and sized by
the equal-area radius, for a quick look without a browser.
"""

import os

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from ecomap import config
from ecomap.formulas.geometry import radius_series
from ecomap.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)


def render_overview(wide, path, dpi=config.MAP_DPI):
    """Scatter of every location; marker area scales with ecoregion area."""
    radii_km = radius_series(wide["area_km2"]) / 1000.0
    # Invalid areas still get a point, at the smallest size.
    sizes = np.clip(np.nan_to_num(radii_km.to_numpy(), nan=0.0), 1.0, None)
    sizes = 20.0 + 180.0 * sizes / sizes.max()

    biomes = wide["biome"].fillna("Unknown").astype(str)
    palette = plt.get_cmap("tab20")
    fig, ax = plt.subplots(figsize=(10, 7))
    for i, biome in enumerate(sorted(biomes.unique())):
        mask = (biomes == biome).to_numpy()
        ax.scatter(
            wide.loc[mask, "longitude"], wide.loc[mask, "latitude"],
            s=sizes[mask], color=palette(i % palette.N), alpha=0.7,
            edgecolor="#333333", linewidth=0.5, label=biome,
        )

    ax.set_xlabel("Longitude")
    ax.set_ylabel("Latitude")
    ax.set_title(f"Ecoregions ({len(wide)} locations)")
    ax.grid(True, alpha=0.3)
    ax.legend(loc="best", fontsize=7, title="Biome", title_fontsize=8)

    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    fig.savefig(path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    log.info("Saved overview map: %s", path)
    return path
