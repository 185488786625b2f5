"""
Logging for the ecoregion pipeline.

Every module takes its logger from ``get_pipeline_logger(__name__)`` and
never configures logging itself. The console gets plain lines. The
rotating ``logs/pipeline.log`` and the run's own
``<output_dir>/pipeline.jsonl`` get one JSON object per record, tagged
with the run id and with whatever structured fields the caller passed
through ``extra=``: the source table, the codes a join dropped, step
summaries.

Usage:
    from ecomap.logging_config import get_pipeline_logger
    log = get_pipeline_logger(__name__)
    log.warning("merge dropped codes", extra={"source": "climate",
                                              "dropped_codes": ["IM1404"]})
"""

import json
import logging
import os
import uuid
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from ecomap import config


# Fields lifted from ``extra=`` into the JSON entry, in this order.
_STRUCTURED_FIELDS = (
    "step_name",
    "source",
    "dropped_codes",
    "dropped_count",
    "input_summary",
    "output_summary",
    "timing_seconds",
    "nan_summary",
    "warnings",
)

_state = {"run_id": None, "configured": False, "run_handler": None}


def set_run_id(run_id=None):
    """Start a new run id (or adopt *run_id*) and return it."""
    _state["run_id"] = run_id or uuid.uuid4().hex[:8]
    return _state["run_id"]


def current_run_id():
    if _state["run_id"] is None:
        set_run_id()
    return _state["run_id"]


class RunContextFilter(logging.Filter):
    """Tag records with the run id; count dropped codes when a list is given."""

    def filter(self, record):
        record.run_id = current_run_id()
        codes = getattr(record, "dropped_codes", None)
        if codes is not None and not hasattr(record, "dropped_count"):
            record.dropped_count = len(codes)
        return True


class JsonLinesFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
                                 .isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "run_id": getattr(record, "run_id", None),
            "logger": record.name,
            "where": f"{record.funcName}:{record.lineno}",
            "message": record.getMessage(),
        }
        entry.update({
            key: getattr(record, key)
            for key in _STRUCTURED_FIELDS if hasattr(record, key)
        })
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _attach(root, handler, level, formatter):
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RunContextFilter())
    root.addHandler(handler)
    return handler


def setup_logging(run_dir=None, console_level=None, log_dir=None):
    """Attach the console, rotating and per-run handlers to the root logger.

    The console and rotating handlers are attached once per process. The
    per-run ``pipeline.jsonl`` handler is attached the first time a
    *run_dir* is given.

    Parameters
    ----------
    run_dir : str, optional
        Output directory of the run.
    console_level : int, optional
        Default: the ``LOG_LEVEL`` environment variable, else INFO.
    log_dir : str, optional
        Directory of the rotating log. Default: ``./logs``.
    """
    root = logging.getLogger()

    if not _state["configured"]:
        if console_level is None:
            name = os.environ.get("LOG_LEVEL", "INFO").upper()
            console_level = getattr(logging, name, logging.INFO)
        root.setLevel(logging.DEBUG)

        _attach(root, logging.StreamHandler(), console_level,
                logging.Formatter(config.CONSOLE_LOG_FORMAT, datefmt="%H:%M:%S"))

        log_dir = log_dir or os.path.join(os.getcwd(), config.LOG_DIR_NAME)
        os.makedirs(log_dir, exist_ok=True)
        _attach(root,
                RotatingFileHandler(os.path.join(log_dir, config.LOG_FILE_NAME),
                                    maxBytes=config.LOG_MAX_BYTES,
                                    backupCount=config.LOG_BACKUP_COUNT),
                logging.DEBUG, JsonLinesFormatter())
        _state["configured"] = True

    if run_dir and _state["run_handler"] is None:
        os.makedirs(run_dir, exist_ok=True)
        _state["run_handler"] = _attach(
            root, logging.FileHandler(os.path.join(run_dir, config.RUN_LOG_NAME)),
            logging.DEBUG, JsonLinesFormatter(),
        )


def reset_logging():
    """Detach and close every root handler and forget the run id."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    _state.update(run_id=None, configured=False, run_handler=None)


def get_pipeline_logger(name):
    """Module logger; sets up the default handlers on first use."""
    if not _state["configured"]:
        setup_logging()
    return logging.getLogger(name)


def log_step_summary(logger, result):
    """One line per finished step, at ERROR when the step failed.

    The StepResult's summaries travel as structured fields so the JSON
    logs carry row counts and warnings without parsing the message.
    """
    if result.ok:
        text = f"[{result.step_name}] done in {result.timing_seconds:.2f}s"
        if result.output_summary:
            text += " " + ", ".join(f"{k}={v}" for k, v in result.output_summary.items())
        if result.warnings:
            text += f" ({len(result.warnings)} warning(s))"
    else:
        text = (f"[{result.step_name}] failed after {result.timing_seconds:.2f}s: "
                f"{result.error_message}")

    extra = {"step_name": result.step_name, "timing_seconds": result.timing_seconds}
    for key in ("input_summary", "output_summary", "warnings"):
        value = getattr(result, key)
        if value:
            extra[key] = value
    logger.log(logging.INFO if result.ok else logging.ERROR, text, extra=extra)
