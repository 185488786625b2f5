"""
Runs one pipeline step and records it.

``run_step()`` calls the step's work function, times it, turns an
exception into an error StepResult and logs a one-line summary either
way. Whether a failed step aborts the run is the runner's decision.
"""

import time
import traceback
from typing import Callable, TypeVar

import pandas as pd

from ecomap.logging_config import get_pipeline_logger, log_step_summary
from ecomap.pipeline_types import StepResult, StepStatus

T = TypeVar("T")

log = get_pipeline_logger(__name__)

# Failures caused by the input files, logged without a console traceback.
INPUT_ERRORS = (
    FileNotFoundError,
    ValueError,
    KeyError,
    pd.errors.EmptyDataError,
    pd.errors.ParserError,
    pd.errors.MergeError,
)


def table_summary(data):
    """Default output summary: the shape of a returned table."""
    if isinstance(data, pd.DataFrame):
        return {"rows": len(data), "columns": data.shape[1]}
    return {}


def _failed(step_name, input_summary, message, started):
    # Called from inside an except block, so format_exc() sees the error.
    return StepResult(
        step_name=step_name,
        status=StepStatus.ERROR.value,
        input_summary=input_summary,
        error=traceback.format_exc(),
        error_message=message,
        timing_seconds=time.perf_counter() - started,
    )


def run_step(
    step_name: str,
    fn: Callable[..., T],
    *args,
    input_summary: dict | None = None,
    output_summary_fn: Callable[[T], dict] | None = None,
    warnings_fn: Callable[[T], list] | None = None,
    expected_exceptions: tuple[type[Exception], ...] = INPUT_ERRORS,
    **kwargs,
) -> tuple[StepResult, T | None]:
    """Run ``fn(*args, **kwargs)`` as the step *step_name*.

    Parameters
    ----------
    input_summary : dict, optional
        What the step was given (paths, flags, row counts).
    output_summary_fn : callable, optional
        Summary of *fn*'s return value. Defaults to the shape when the
        value is a DataFrame. Not called when *fn* fails or returns None.
    warnings_fn : callable, optional
        Warning strings drawn from *fn*'s return value, e.g. dropped codes.
    expected_exceptions : tuple
        Errors reported by message only; anything else is logged with
        its traceback as an unexpected failure.

    Returns
    -------
    tuple[StepResult, T | None]
        The data is None when the step failed.
    """
    input_summary = dict(input_summary or {})
    started = time.perf_counter()
    try:
        data = fn(*args, **kwargs)
    except expected_exceptions as exc:
        log.error("%s failed: %s", step_name, exc)
        log.debug("%s traceback", step_name, exc_info=True)
        result, data = _failed(step_name, input_summary, str(exc), started), None
    except Exception as exc:
        log.error("%s failed unexpectedly", step_name, exc_info=True)
        result, data = _failed(step_name, input_summary,
                               f"{type(exc).__name__}: {exc}", started), None
    else:
        elapsed = time.perf_counter() - started
        summary, warnings_list = {}, []
        if data is not None:
            summary = (output_summary_fn or table_summary)(data)
            if warnings_fn is not None:
                warnings_list = list(warnings_fn(data))
        result = StepResult(
            step_name=step_name,
            status=StepStatus.SUCCESS.value,
            input_summary=input_summary,
            output_summary=summary,
            warnings=warnings_list,
            timing_seconds=elapsed,
        )

    log_step_summary(log, result)
    return result, data
