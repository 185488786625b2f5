"""
Interactive ecoregion map.

One marker per wide-table row and one equal-area circle per location.
Marker popups show the ecoregion name, biome, code and the value of the
currently selected attribute, looked up in the long table.

The two dependent selections (category, then attribute) are held by
AttributeSelector, which the Streamlit view and the CLI both drive.
"""

import html
from dataclasses import dataclass, field

import folium
import pandas as pd
from matplotlib import colormaps
from matplotlib.colors import Normalize, to_hex

from ecomap import config
from ecomap.formulas.geometry import radius_from_area
from ecomap.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)


# ── Selection state ─────────────────────────────────────────────────────

def attribute_options(long, category):
    """Distinct attribute names of *category*, in first-seen order."""
    names = long.loc[long["category"] == category, "attribute_name"]
    return list(dict.fromkeys(names))


class AttributeSelector:
    """Category -> attribute selection over a long table.

    Choosing a category recomputes ``options`` from the long table and
    resets ``attribute`` to the first option (None when the category has
    no rows), so the attribute never refers to another category.
    """

    categories = config.CATEGORIES

    def __init__(self, long, category=config.DEFAULT_CATEGORY):
        self.long = long
        self.category = None
        self.options = []
        self.attribute = None
        self.select_category(category)

    def select_category(self, category):
        if category not in self.categories:
            raise ValueError(
                f"unknown category {category!r}; expected one of {list(self.categories)}"
            )
        self.category = category
        self.options = attribute_options(self.long, category)
        self.attribute = self.options[0] if self.options else None
        log.debug("Selected category %s (%d attributes)", category, len(self.options))
        return self.options

    def select_attribute(self, attribute):
        if attribute not in self.options:
            raise ValueError(
                f"attribute {attribute!r} not available for {self.category}; "
                f"options: {self.options}"
            )
        self.attribute = attribute
        return attribute

    def values(self):
        """``{code: value}`` for the current selection."""
        return lookup_attribute_values(self.long, self.category, self.attribute)

    def __repr__(self):
        return (f"AttributeSelector(category={self.category!r}, "
                f"attribute={self.attribute!r}, options={len(self.options)})")


def lookup_attribute_values(long, category, attribute):
    """Map each code to its value for one (category, attribute).

    Codes with a missing value, or no row at all, are absent from the
    result.
    """
    if attribute is None:
        return {}
    rows = long[
        (long["category"] == category)
        & (long["attribute_name"] == attribute)
        & (long["value_type"] != config.VALUE_MISSING)
    ]
    return dict(zip(rows["code"], rows["value"]))


# ── Popup content ───────────────────────────────────────────────────────

def attribute_label(attribute, labels=None):
    """Display label for an attribute, using the abbreviation key if any."""
    if not labels or attribute is None:
        return attribute
    meaning = labels.get(attribute) or labels.get(str(attribute).lower())
    return f"{attribute} ({meaning})" if meaning else attribute


def format_value(value):
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return config.NO_DATA_LABEL
    if isinstance(value, float):
        return f"{value:,.6g}"
    return str(value)


def popup_html(row, attribute, value, labels=None):
    """HTML body of one marker popup."""
    name = row.get("ecoregion_name")
    biome = row.get("biome")
    lines = [
        f"<h4>{html.escape(str(name) if pd.notna(name) else row['code'])}</h4>",
        f"<b>Biome:</b> {html.escape(format_value(biome if pd.notna(biome) else None))}<br>",
        f"<b>Code:</b> {html.escape(str(row['code']))}<br>",
    ]
    if attribute is None:
        lines.append(f"<i>{config.NO_DATA_LABEL}</i>")
    else:
        label = html.escape(str(attribute_label(attribute, labels)))
        lines.append(f"<b>{label}:</b> {html.escape(format_value(value))}")
    return "<div style='font-family: Arial; line-height: 1.4;'>" + "".join(lines) + "</div>"


# ── Colour scale ────────────────────────────────────────────────────────

def value_colors(values, cmap_name=config.MAP_COLORMAP):
    """Hex colour per code for numeric values; empty when nothing is numeric."""
    numeric = {
        code: v for code, v in values.items()
        if isinstance(v, (int, float)) and not isinstance(v, bool) and pd.notna(v)
    }
    if not numeric:
        return {}
    lo, hi = min(numeric.values()), max(numeric.values())
    if lo == hi:
        hi = lo + 1.0
    norm = Normalize(vmin=lo, vmax=hi)
    cmap = colormaps[cmap_name]
    return {code: to_hex(cmap(norm(v))) for code, v in numeric.items()}


# ── Map ─────────────────────────────────────────────────────────────────

@dataclass
class MapRender:
    """A rendered map plus what could not be drawn."""

    map: folium.Map
    category: str
    attribute: str | None
    skipped_circles: list = field(default_factory=list)
    no_data_codes: list = field(default_factory=list)

    @property
    def warnings(self):
        out = []
        if self.skipped_circles:
            out.append(f"no circle for {len(self.skipped_circles)} location(s) "
                       f"with missing or non-positive area: {self.skipped_circles[:10]}")
        if self.no_data_codes:
            out.append(f"no '{self.attribute}' value for {len(self.no_data_codes)} location(s)")
        return out


def build_map(wide, long, category=config.DEFAULT_CATEGORY, attribute=None, labels=None):
    """Render the map for one selection.

    Parameters
    ----------
    wide : pd.DataFrame
        Wide table: marker positions and popup identity fields.
    long : pd.DataFrame
        Long table: attribute lookup.
    category : str
        One of ``config.CATEGORIES``.
    attribute : str, optional
        Attribute of *category*; defaults to the category's first one.
    labels : dict, optional
        Abbreviation key used for attribute display labels.

    Returns
    -------
    MapRender
    """
    selector = AttributeSelector(long, category)
    if attribute is not None:
        selector.select_attribute(attribute)
    values = selector.values()
    colors = value_colors(values)

    m = folium.Map(
        location=[wide["latitude"].mean(), wide["longitude"].mean()],
        zoom_start=config.MAP_ZOOM_START,
        tiles=config.MAP_TILES,
    )
    markers = folium.FeatureGroup(name="Ecoregions").add_to(m)
    circles = folium.FeatureGroup(name="Ecoregion area").add_to(m)

    skipped, no_data = [], []
    for row in wide.to_dict("records"):
        code = row["code"]
        location = [row["latitude"], row["longitude"]]
        value = values.get(code)
        if value is None:
            no_data.append(code)

        folium.Marker(
            location=location,
            popup=folium.Popup(popup_html(row, selector.attribute, value, labels),
                               max_width=config.POPUP_MAX_WIDTH),
            tooltip=str(row["ecoregion_name"]) if pd.notna(row.get("ecoregion_name")) else code,
        ).add_to(markers)

        radius = radius_from_area(row.get("area_km2"))
        if radius is None:
            skipped.append(code)
            continue
        color = colors.get(code, config.MAP_DEFAULT_CIRCLE_COLOR)
        folium.Circle(
            location=location,
            radius=radius,
            color=color,
            weight=1,
            fill=True,
            fill_color=color,
            fill_opacity=config.MAP_CIRCLE_OPACITY,
        ).add_to(circles)

    if skipped:
        log.warning("Skipped area circle for %d location(s) with missing or "
                    "non-positive area: %s", len(skipped), skipped[:20],
                    extra={"dropped_codes": skipped})
    if len(wide):
        m.fit_bounds([
            [wide["latitude"].min(), wide["longitude"].min()],
            [wide["latitude"].max(), wide["longitude"].max()],
        ])
    folium.LayerControl().add_to(m)

    return MapRender(
        map=m,
        category=selector.category,
        attribute=selector.attribute,
        skipped_circles=skipped,
        no_data_codes=no_data,
    )


def render_map_html(wide, long, path, category=config.DEFAULT_CATEGORY,
                    attribute=None, labels=None):
    """Build the map for one selection and save it as standalone HTML."""
    render = build_map(wide, long, category, attribute, labels)
    render.map.save(path)
    log.info("Saved map (%s / %s): %s", render.category, render.attribute, path)
    return render
