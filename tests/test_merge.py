"""
Tests for ecomap/merge.py: the three-way join and the metadata
redistribution.

CRITICAL: a code that silently disappears here disappears from every
output. Every drop must be either an inner-join exclusion (logged) or
an explicit error.
"""

import pandas as pd
import pytest

from ecomap.merge import (
    attach_metadata,
    extract_biome_metadata,
    extract_coordinates,
    merge_sources,
    overlap_report,
    redistribute_metadata,
)


class TestMergeSources:

    def test_only_codes_in_all_sources(self, wide_table):
        assert list(wide_table["code"]) == ["A", "B"]

    def test_exactly_one_row_per_code(self, wide_table):
        assert wide_table["code"].is_unique

    def test_union_of_attributes(self, wide_table, climate_wide, ecoregion_table, species_table):
        expected = set(climate_wide.columns) | set(ecoregion_table.columns) | set(species_table.columns)
        assert set(wide_table.columns) == expected

    def test_values_carried_through(self, wide_table):
        row = wide_table.set_index("code").loc["B"]
        assert row["mean_temp"] == 24.6
        assert row["area_km2"] == 2500.0
        assert row["biome"] == "Mangroves"

    def test_dropped_codes_logged(self, climate_wide, ecoregion_table, species_table, caplog):
        merge_sources(climate_wide, ecoregion_table, species_table)
        assert "from ecoregion not present in all sources" in caplog.text
        assert "['C']" in caplog.text

    def test_inputs_not_modified(self, climate_wide, ecoregion_table, species_table):
        before = ecoregion_table.copy()
        merge_sources(climate_wide, ecoregion_table, species_table)
        pd.testing.assert_frame_equal(ecoregion_table, before)

    def test_disjoint_source_raises_with_diagnostic(self, climate_wide, ecoregion_table, species_table):
        species = species_table.assign(code=["X", "Y"])
        with pytest.raises(ValueError, match="0 rows") as exc_info:
            merge_sources(climate_wide, ecoregion_table, species)
        assert "zero overlap: ['species']" in str(exc_info.value)

    def test_pairwise_overlap_without_common_code(self):
        climate = pd.DataFrame({"code": ["A"], "t": [1.0]})
        ecoregion = pd.DataFrame({"code": ["A", "B"], "longitude": [0.0, 1.0]})
        species = pd.DataFrame({"code": ["B"], "biome": ["Tundra"]})
        with pytest.raises(ValueError, match="no code is shared by all three"):
            merge_sources(climate, ecoregion, species)

    def test_duplicate_code_rejected(self, climate_wide, ecoregion_table, species_table):
        species = pd.concat([species_table, species_table.iloc[[0]]], ignore_index=True)
        with pytest.raises(ValueError, match="not unique"):
            merge_sources(climate_wide, ecoregion_table, species)

    def test_shared_column_rejected(self, climate_wide, ecoregion_table, species_table):
        climate = climate_wide.assign(elevation=[1.0, 2.0])
        with pytest.raises(ValueError, match="'elevation' appears in both"):
            merge_sources(climate, ecoregion_table, species_table)


class TestOverlapReport:

    def test_counts(self, climate_wide, ecoregion_table, species_table):
        report = overlap_report({
            "climate": climate_wide, "ecoregion": ecoregion_table, "species": species_table,
        })
        assert report["ecoregion"]["rows"] == 3
        assert report["ecoregion"]["overlap_climate"] == 2
        assert report["climate"]["overlap_species"] == 2


class TestSideTables:

    def test_coordinates(self, ecoregion_table):
        coords = extract_coordinates(ecoregion_table)
        assert list(coords.columns) == ["code", "longitude", "latitude"]
        assert len(coords) == 3

    def test_biome_metadata(self, species_table):
        meta = extract_biome_metadata(species_table)
        assert list(meta.columns) == ["code", "ecoregion_name", "biome"]


class TestRedistributeMetadata:

    def test_every_table_gets_identity_fields(self, climate_wide, ecoregion_table, species_table):
        result = redistribute_metadata(climate_wide, ecoregion_table, species_table)
        for df in (result.climate, result.ecoregion, result.species):
            for col in ("code", "ecoregion_name", "biome", "longitude", "latitude"):
                assert col in df.columns

    def test_climate_gets_coordinates_and_biome(self, climate_wide, ecoregion_table, species_table):
        result = redistribute_metadata(climate_wide, ecoregion_table, species_table)
        row = result.climate.set_index("code").loc["A"]
        assert row["longitude"] == 10.0
        assert row["biome"] == "Tropical Moist Forest"

    def test_unmatched_rows_reported_not_silent(self, climate_wide, ecoregion_table, species_table, caplog):
        result = redistribute_metadata(climate_wide, ecoregion_table, species_table)
        assert list(result.ecoregion["code"]) == ["A", "B"]
        assert result.dropped["ecoregion"] == ["C"]
        assert result.dropped["species"] == []
        assert any("ecoregion" in w for w in result.warnings)
        assert "no location metadata" in caplog.text

    def test_strict_raises_on_unmatched(self, climate_wide, ecoregion_table, species_table):
        with pytest.raises(ValueError, match=r"ecoregion: 1 code\(s\) have no location metadata"):
            redistribute_metadata(climate_wide, ecoregion_table, species_table, strict=True)

    def test_strict_passes_when_complete(self, climate_wide, ecoregion_table, species_table):
        ecoregion = ecoregion_table[ecoregion_table["code"] != "C"]
        result = redistribute_metadata(climate_wide, ecoregion, species_table, strict=True)
        assert all(not codes for codes in result.dropped.values())

    def test_climate_missing_coordinates_dropped(self, climate_wide, ecoregion_table, species_table):
        ecoregion = ecoregion_table[ecoregion_table["code"] != "B"]
        result = redistribute_metadata(climate_wide, ecoregion, species_table)
        assert list(result.climate["code"]) == ["A"]
        assert result.dropped["climate"] == ["B"]
        assert result.dropped["species"] == ["B"]

    def test_row_count_preserved_when_matched(self, climate_wide, ecoregion_table, species_table):
        result = redistribute_metadata(climate_wide, ecoregion_table, species_table)
        assert len(result.climate) == len(climate_wide)
        assert len(result.species) == len(species_table)


class TestAttachMetadata:

    def test_existing_side_columns_replaced(self):
        df = pd.DataFrame({"code": ["A"], "biome": ["old"], "x": [1]})
        side = pd.DataFrame({"code": ["A"], "biome": ["new"]})
        out, unmatched = attach_metadata(df, side, "t")
        assert out.loc[0, "biome"] == "new"
        assert unmatched == []
        assert "_merge" not in out.columns
