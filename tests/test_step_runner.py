"""
Tests for ecomap/step_runner.py and the step wrappers in
ecomap/pipeline_steps.py.

Every pipeline step flows through run_step(). A bug here swallows
errors or misreports step status, and the runner's abort logic depends
on both.
"""

import os
import time

import pandas as pd
import pytest

from ecomap.pipeline_types import StepResult
from ecomap.step_runner import run_step


class TestRunStepSuccess:

    def test_basic_success(self):
        result, data = run_step("test_step", lambda: 42)
        assert isinstance(result, StepResult)
        assert result.status == "success"
        assert result.ok
        assert result.step_name == "test_step"
        assert result.error is None
        assert result.error_message is None
        assert data == 42

    def test_timing_recorded(self):
        def slow_fn():
            time.sleep(0.05)
            return "done"

        result, _ = run_step("timed_step", slow_fn)
        assert result.timing_seconds >= 0.04

    def test_args_and_kwargs_passed(self):
        def adder(a, b, multiplier=1):
            return (a + b) * multiplier

        _, data = run_step("adder", adder, 3, 4, multiplier=2)
        assert data == 14

    def test_input_summary_recorded(self):
        result, _ = run_step("summarized", lambda: "ok",
                             input_summary={"rows": 100, "cols": 5})
        assert result.input_summary == {"rows": 100, "cols": 5}

    def test_output_summary_fn_called(self):
        result, _ = run_step("with_summary", lambda: [1, 2, 3],
                             output_summary_fn=lambda x: {"count": len(x)})
        assert result.output_summary == {"count": 3}

    def test_output_summary_skipped_for_none(self):
        called = []
        result, data = run_step(
            "none_result", lambda: None,
            output_summary_fn=lambda x: called.append(True) or {"n": 0},
        )
        assert data is None
        assert called == []

    def test_warnings_fn_collected(self):
        result, _ = run_step("warns", lambda: {"dropped": ["X1"]},
                             warnings_fn=lambda d: [f"dropped {c}" for c in d["dropped"]])
        assert result.status == "success"
        assert result.warnings == ["dropped X1"]

    def test_empty_dataframe_is_a_result(self):
        result, data = run_step("empty_df", pd.DataFrame,
                                output_summary_fn=lambda df: {"rows": len(df)})
        assert result.status == "success"
        assert data is not None
        assert result.output_summary == {"rows": 0}

    def test_dataframe_summary_by_default(self, climate_wide):
        result, _ = run_step("pivot", lambda: climate_wide)
        assert result.output_summary == {"rows": 2, "columns": 3}

    def test_non_table_result_has_empty_default_summary(self):
        result, _ = run_step("labels", lambda: {"mean_temp": "Mean temperature"})
        assert result.output_summary == {}

    def test_no_input_summary_defaults_to_empty(self):
        result, _ = run_step("no_summary", lambda: 1)
        assert result.input_summary == {}


class TestRunStepErrorHandling:

    @pytest.mark.parametrize("exc", [
        FileNotFoundError("climate.csv not found"),
        ValueError("merge produced 0 rows"),
        KeyError("code"),
        pd.errors.EmptyDataError("No columns to parse"),
        pd.errors.ParserError("Error tokenizing data"),
        pd.errors.MergeError("not a one-to-one merge"),
    ])
    def test_expected_exceptions_caught(self, exc):
        def fails():
            raise exc

        result, data = run_step("failing_step", fails)
        assert result.status == "error"
        assert not result.ok
        assert data is None
        assert type(exc).__name__ in result.error

    def test_error_message_is_exception_text(self):
        def fails():
            raise ValueError("species: line 3 has 7 fields, header has 8")

        result, _ = run_step("load", fails)
        assert result.error_message == "species: line 3 has 7 fields, header has 8"

    def test_unexpected_exception_also_caught(self):
        def unexpected():
            raise RuntimeError("unexpected crash")

        result, data = run_step("unexpected", unexpected)
        assert result.status == "error"
        assert "unexpected crash" in result.error
        assert result.error_message == "RuntimeError: unexpected crash"

    def test_custom_expected_exceptions(self):
        def type_error():
            raise TypeError("wrong type")

        result, _ = run_step("custom", type_error, expected_exceptions=(TypeError,))
        assert result.status == "error"
        assert result.error_message == "wrong type"

    def test_error_timing_still_recorded(self):
        def fails_slowly():
            time.sleep(0.05)
            raise ValueError("slow fail")

        result, _ = run_step("slow_fail", fails_slowly)
        assert result.timing_seconds >= 0.04

    def test_error_logged(self, caplog):
        def fails():
            raise ValueError("bad input")

        run_step("logged_step", fails)
        assert "logged_step failed: bad input" in caplog.text
        assert "[logged_step] failed after" in caplog.text


class TestPipelineSteps:
    """The step wrappers report their data the way the runner expects."""

    def test_load_sources(self, source_files):
        from ecomap.pipeline_steps import step_load_sources

        result, sources = step_load_sources(
            source_files["ecoregions"], source_files["climate"],
            source_files["species"], source_files["key"],
        )
        assert result.ok
        assert set(sources) == {"ecoregion", "climate", "species", "key"}
        assert sources["key"]["mean_temp"] == "Mean annual temperature (C)"

    def test_load_sources_without_key(self, source_files):
        from ecomap.pipeline_steps import step_load_sources

        result, sources = step_load_sources(
            source_files["ecoregions"], source_files["climate"], source_files["species"],
        )
        assert result.ok
        assert not sources["key"]

    def test_load_missing_file_is_step_error(self, source_files):
        from ecomap.pipeline_steps import step_load_sources

        result, sources = step_load_sources(
            os.path.join(source_files["dir"], "absent.txt"),
            source_files["climate"], source_files["species"],
        )
        assert result.status == "error"
        assert sources is None
        assert "not found" in result.error_message

    def test_merge_step_zero_rows(self, climate_wide, ecoregion_table, species_table):
        from ecomap.pipeline_steps import step_merge

        disjoint = species_table.assign(code=["X", "Y"])
        result, wide = step_merge({
            "climate": climate_wide, "ecoregion": ecoregion_table, "species": disjoint,
        })
        assert result.status == "error"
        assert wide is None
        assert "0 rows" in result.error_message

    def test_redistribute_step_reports_drops(self, climate_wide, ecoregion_table, species_table):
        from ecomap.pipeline_steps import step_redistribute

        result, enriched = step_redistribute({
            "climate": climate_wide, "ecoregion": ecoregion_table, "species": species_table,
        })
        assert result.ok
        # C has coordinates but no biome metadata.
        assert enriched.dropped["ecoregion"] == ["C"]
        assert any("ecoregion" in w for w in result.warnings)
