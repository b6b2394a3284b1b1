from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from rampbench.analysis.classifier import NO_REASON, BreakReason, StepClassification, StepStatus, is_terminal
from rampbench.metrics import ErrorCodeCounts, StepResult, aggregate_error_codes, total_requests

RECOMMENDED_FACTOR = 0.8


@dataclass(frozen=True, slots=True)
class RunSummary:
    breaking_point_rate: int | None
    break_reason: BreakReason
    last_stable_rate: int | None
    recommended_rate: int | None
    total_requests: int
    total_duration_seconds: int
    was_rate_limited: bool
    was_blocked: bool
    aggregated_error_codes: ErrorCodeCounts


def summarize_run(
    results: Sequence[StepResult],
    classifications: Sequence[StepClassification],
    duration_per_step: int,
) -> RunSummary:
    breaking_point_rate: int | None = None
    break_reason = NO_REASON
    last_stable_rate: int | None = None
    was_rate_limited = False
    was_blocked = False

    for i, classification in enumerate(classifications):
        status = classification.status
        if is_terminal(status):
            breaking_point_rate = results[i].target_rate
            break_reason = classification.break_reason
            was_rate_limited = status is StepStatus.RATE_LIMITED
            was_blocked = status is StepStatus.BLOCKED
            if i > 0:
                last_stable_rate = results[i - 1].target_rate
            break
        if status is StepStatus.OK:
            last_stable_rate = results[i].target_rate

    if breaking_point_rate is None and results:
        last_stable_rate = results[-1].target_rate

    recommended_rate = None
    if last_stable_rate is not None:
        recommended_rate = math.floor(last_stable_rate * RECOMMENDED_FACTOR)

    return RunSummary(
        breaking_point_rate=breaking_point_rate,
        break_reason=break_reason,
        last_stable_rate=last_stable_rate,
        recommended_rate=recommended_rate,
        total_requests=total_requests(results),
        total_duration_seconds=len(results) * duration_per_step,
        was_rate_limited=was_rate_limited,
        was_blocked=was_blocked,
        aggregated_error_codes=aggregate_error_codes(results),
    )
