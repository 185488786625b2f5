"""
Run records for the ecoregion pipeline.

A StepResult describes one step. PipelineRunResult collects them with
what the run produced: table sizes, the codes each join dropped, the
map selection and the files written. It is saved as
``pipeline_run.json`` next to the outputs.
"""

import subprocess
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class StepStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


def _git_sha():
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],
            stderr=subprocess.DEVNULL, text=True,
        ).strip()
    except (subprocess.SubprocessError, FileNotFoundError):
        return None


@dataclass
class StepResult:
    """Outcome of one step (load, normalize, merge, ...)."""

    step_name: str
    status: str
    input_summary: dict = field(default_factory=dict)
    output_summary: dict = field(default_factory=dict)
    timing_seconds: float = 0.0
    warnings: list = field(default_factory=list)
    error: Optional[str] = None  # traceback
    error_message: Optional[str] = None
    started_at: str = field(default_factory=_now_iso)
    nan_summary: Optional[dict] = None

    @property
    def ok(self):
        return self.status == StepStatus.SUCCESS

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, d):
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})


@dataclass
class PipelineRunResult:
    """Everything ``pipeline_run.json`` records about one run."""

    run_dir: str = ""
    sources: dict = field(default_factory=dict)  # source name -> input path
    step_results: list = field(default_factory=list)
    wide_rows: Optional[int] = None
    long_rows: Optional[int] = None
    # stage ("merge", "redistribute_metadata") -> source -> dropped codes
    dropped_codes: dict = field(default_factory=dict)
    map_selection: Optional[dict] = None
    output_files: list = field(default_factory=list)
    total_time_seconds: float = 0.0
    aborted_at: Optional[str] = None
    git_sha: Optional[str] = field(default_factory=_git_sha)
    started_at: str = field(default_factory=_now_iso)

    @property
    def all_ok(self):
        return self.aborted_at is None and not self.failed_steps

    @property
    def failed_steps(self):
        return [s for s in self.step_results if not s.ok]

    def record_dropped(self, stage, per_source):
        """Keep the non-empty ``{source: codes}`` entries for *stage*."""
        kept = {name: sorted(codes) for name, codes in per_source.items() if codes}
        if kept:
            self.dropped_codes[stage] = kept
        return kept

    def to_dict(self):
        d = asdict(self)
        d["steps"] = d.pop("step_results")
        d["all_ok"] = self.all_ok
        return d

    @classmethod
    def from_dict(cls, d):
        known = {f.name for f in fields(cls)} - {"step_results"}
        result = cls(**{k: v for k, v in d.items() if k in known})
        result.step_results = [StepResult.from_dict(s) for s in d.get("steps", [])]
        return result
