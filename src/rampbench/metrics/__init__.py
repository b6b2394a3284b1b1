from __future__ import annotations

from rampbench.metrics.aggregator import aggregate_error_codes, sort_by_count, total_requests
from rampbench.metrics.models import ErrorCodeCounts, StepResult

__all__ = ["ErrorCodeCounts", "StepResult", "aggregate_error_codes", "sort_by_count", "total_requests"]
