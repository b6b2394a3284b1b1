from __future__ import annotations

from rampbench.analysis.classifier import (
    BreakKind,
    BreakReason,
    StepClassification,
    StepStatus,
    classify_step,
    dominant_error_code,
    is_terminal,
    stops_run,
)
from rampbench.analysis.compare import Regression, breaking_point_regression, compare_runs
from rampbench.analysis.summary import RunSummary, summarize_run

__all__ = [
    "BreakKind",
    "BreakReason",
    "Regression",
    "RunSummary",
    "StepClassification",
    "StepStatus",
    "breaking_point_regression",
    "classify_step",
    "compare_runs",
    "dominant_error_code",
    "is_terminal",
    "stops_run",
    "summarize_run",
]
