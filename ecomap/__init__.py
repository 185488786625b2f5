"""Ecoregion atlas: merge ecoregion, climate and species tables and map them."""

__version__ = "0.1.0"
