"""
Streamlit view: ecoregion map with a category -> attribute selector.

    streamlit run ecomap/app.py

Input files default to ``config.DATA_DIR`` (override with the
``ECOMAP_DATA_DIR`` environment variable).
"""

import os

import streamlit as st
from streamlit_folium import st_folium

from ecomap import config
from ecomap.loaders import load_abbreviation_key
from ecomap.outputs.interactive_map import AttributeSelector, attribute_label, build_map
from ecomap.pipeline_runner import build_tables


@st.cache_data(show_spinner="Loading ecoregion tables...")
def load_tables(ecoregion_path, climate_path, species_path):
    return build_tables(ecoregion_path, climate_path, species_path)


@st.cache_data
def load_labels(key_path):
    if not os.path.isfile(key_path):
        return {}
    return load_abbreviation_key(key_path)


def _reset_attribute():
    """Category changed: point the attribute at the new category's default."""
    selector = st.session_state["selector"]
    selector.select_category(st.session_state["category"])
    st.session_state["attribute"] = selector.attribute


def main():
    st.set_page_config(page_title="Ecoregion Atlas", layout="wide")
    st.title("Ecoregion Atlas")

    try:
        wide, long = load_tables(
            config.DEFAULT_ECOREGION_FILE,
            config.DEFAULT_CLIMATE_FILE,
            config.DEFAULT_SPECIES_FILE,
        )
    except (FileNotFoundError, ValueError) as exc:
        st.error(f"Could not build the ecoregion tables: {exc}")
        st.stop()
    labels = load_labels(config.DEFAULT_KEY_FILE)

    if "selector" not in st.session_state:
        selector = AttributeSelector(long)
        st.session_state["selector"] = selector
        st.session_state["category"] = selector.category
        st.session_state["attribute"] = selector.attribute
    selector = st.session_state["selector"]

    col_category, col_attribute = st.columns(2)
    with col_category:
        st.selectbox("Category", list(selector.categories), key="category",
                     on_change=_reset_attribute)
    with col_attribute:
        st.selectbox("Attribute", selector.options, key="attribute",
                     format_func=lambda a: attribute_label(a, labels),
                     disabled=not selector.options)

    if st.session_state["attribute"] is not None:
        selector.select_attribute(st.session_state["attribute"])

    render = build_map(wide, long, selector.category, selector.attribute, labels)
    st_folium(render.map, use_container_width=True, height=600, returned_objects=[])

    for warning in render.warnings:
        st.caption(warning)
    st.caption(f"{len(wide)} ecoregions · {len(long)} attribute values")


main()
