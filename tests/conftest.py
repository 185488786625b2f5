"""
Shared fixtures for the ecoregion pipeline tests.

Provides small synthetic source files and normalized tables so each test
module can check pipeline logic against known inputs. Codes A and B are
present in every source; C exists only in the ecoregion file.
"""

import os
import tempfile

import pandas as pd
import pytest

from ecomap.logging_config import reset_logging


ECOREGION_TEXT = """\
code  long   lat   area  elev  rain.S  rain.W  temp.S  temp.W  patches  mad.elev
A     10.0   5.0   100   200   1000    1100    20.1    19.5    3        12.5
B     20.0  -5.0   2500  50    800     750     25.0    24.2    1        4.0
C     30.0  15.0   400   10    300     280     28.0    27.5    2        1.0
"""

CLIMATE_CSV = """\
code,type,measure
A,mean.temp,19.8
A,annual.rain,1050
B,mean.temp,24.6
B,annual.rain,775
"""

SPECIES_CSV = """\
Code,Biome,Ecoregion Name,Birds,Mammals,Reptiles,Amphibians,Total
A,TrM,Alpha forests,120,40,30,10,200
B,Ma,Beta mangroves,60,10,5,1,76
"""

KEY_CSV = """\
abbreviation,meaning
mean_temp,Mean annual temperature (C)
annual_rain,Mean annual rainfall (mm)
bird_num,Number of bird species
"""


def write_text(path, text):
    """Helper: write *text* to *path*, creating parent directories."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    return path


@pytest.fixture(autouse=True)
def _isolated_logging(tmp_path, monkeypatch):
    """Keep the rotating log file out of the working tree."""
    monkeypatch.chdir(tmp_path)
    yield
    reset_logging()


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory(prefix="ecomap_test_") as d:
        yield d


@pytest.fixture
def source_files(tmp_dir):
    """The three synthetic sources plus the abbreviation key, on disk."""
    return {
        "ecoregions": write_text(os.path.join(tmp_dir, "ecoregions.txt"), ECOREGION_TEXT),
        "climate": write_text(os.path.join(tmp_dir, "climate.csv"), CLIMATE_CSV),
        "species": write_text(os.path.join(tmp_dir, "species.csv"), SPECIES_CSV),
        "key": write_text(os.path.join(tmp_dir, "key.csv"), KEY_CSV),
        "dir": tmp_dir,
    }


@pytest.fixture
def climate_wide():
    """Normalized (pivoted) climate table for codes A and B."""
    return pd.DataFrame({
        "code": ["A", "B"],
        "mean_temp": [19.8, 24.6],
        "annual_rain": [1050.0, 775.0],
    })


@pytest.fixture
def ecoregion_table():
    """Normalized ecoregion table; C has no climate or species rows."""
    return pd.DataFrame({
        "code": ["A", "B", "C"],
        "longitude": [10.0, 20.0, 30.0],
        "latitude": [5.0, -5.0, 15.0],
        "area_km2": [100.0, 2500.0, 400.0],
        "elevation": [200.0, 50.0, 10.0],
    })


@pytest.fixture
def species_table():
    """Normalized species table with decoded biomes."""
    return pd.DataFrame({
        "code": ["A", "B"],
        "biome": ["Tropical Moist Forest", "Mangroves"],
        "ecoregion_name": ["Alpha forests", "Beta mangroves"],
        "bird_num": [120.0, 60.0],
        "mammal_num": [40.0, 10.0],
        "reptile_num": [30.0, 5.0],
        "amphibian_num": [10.0, 1.0],
        "total_num": [200.0, 76.0],
    })


@pytest.fixture
def long_table(climate_wide, ecoregion_table, species_table):
    """Long table built from the normalized fixtures."""
    from ecomap.merge import redistribute_metadata
    from ecomap.reshape import build_long_table

    enriched = redistribute_metadata(climate_wide, ecoregion_table, species_table)
    return build_long_table(enriched.climate, enriched.ecoregion, enriched.species)


@pytest.fixture
def wide_table(climate_wide, ecoregion_table, species_table):
    """Wide table built from the normalized fixtures."""
    from ecomap.merge import merge_sources

    return merge_sources(climate_wide, ecoregion_table, species_table)
