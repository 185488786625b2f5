"""Outputs subpackage: CSV export, the interactive map and the static overview.

Modules are imported on demand so the CLI does not pull in folium or
matplotlib until a map step runs.
"""
