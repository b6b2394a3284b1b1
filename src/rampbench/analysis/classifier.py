from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from rampbench.config import ThresholdConfig
from rampbench.metrics import StepResult

# Achieved throughput below this share of the target is a break.
MIN_THROUGHPUT_PCT = 70.0
ERROR_WARNING_FACTOR = 0.5
LATENCY_WARNING_FACTOR = 0.7

RATE_LIMITED_CODE = 429
BLOCKED_CODE = 403


class StepStatus(str, Enum):
    OK = "OK"
    WARNING = "WARN"
    BREAK = "BREAK"
    RATE_LIMITED = "RATE"
    BLOCKED = "BLOCK"
    HUNG = "HANG"
    GONE = "GONE"


class BreakKind(str, Enum):
    NONE = "none"
    ERROR_RATE = "error_rate"
    RATE_LIMITED = "rate_limited"
    BLOCKED = "blocked"
    P99_LATENCY = "p99_latency"
    THROUGHPUT_DEGRADATION = "throughput_degradation"
    HUNG = "hung"
    NO_RESPONSES = "no_responses"


@dataclass(frozen=True, slots=True)
class BreakReason:
    kind: BreakKind = BreakKind.NONE
    value: float | None = None

    def describe(self) -> str:
        value = self.value or 0.0
        if self.kind is BreakKind.ERROR_RATE:
            return f"Error rate exceeded threshold ({value:.1f}%)"
        if self.kind is BreakKind.RATE_LIMITED:
            return f"Rate limited by server ({value:.1f}% errors)"
        if self.kind is BreakKind.BLOCKED:
            return f"Blocked by WAF/security ({value:.1f}% errors)"
        if self.kind is BreakKind.P99_LATENCY:
            return f"p99 latency exceeded threshold ({value:.0f}ms)"
        if self.kind is BreakKind.THROUGHPUT_DEGRADATION:
            return f"Throughput degradation ({value:.1f}% of target)"
        if self.kind is BreakKind.HUNG:
            return "Server stopped responding"
        if self.kind is BreakKind.NO_RESPONSES:
            return "No successful responses received"
        return ""


NO_REASON = BreakReason()


@dataclass(frozen=True, slots=True)
class StepClassification:
    status: StepStatus
    break_reason: BreakReason = NO_REASON


_TERMINAL = frozenset(
    {StepStatus.BREAK, StepStatus.RATE_LIMITED, StepStatus.BLOCKED, StepStatus.HUNG, StepStatus.GONE}
)
_STOPS_RUN = _TERMINAL - {StepStatus.GONE}


def is_terminal(status: StepStatus) -> bool:
    return status in _TERMINAL


def stops_run(status: StepStatus) -> bool:
    """Statuses that end the ramp immediately. GONE is terminal but does not stop the loop."""
    return status in _STOPS_RUN


def dominant_error_code(result: StepResult) -> int | None:
    """The plurality error status code. Codes are already sorted by count, descending."""
    if not result.error_status_codes:
        return None
    return result.error_status_codes[0][0]


def _classify_error_rate(result: StepResult) -> StepClassification:
    code = dominant_error_code(result)
    if code == RATE_LIMITED_CODE:
        return StepClassification(
            StepStatus.RATE_LIMITED, BreakReason(BreakKind.RATE_LIMITED, result.error_rate)
        )
    if code == BLOCKED_CODE:
        return StepClassification(StepStatus.BLOCKED, BreakReason(BreakKind.BLOCKED, result.error_rate))
    return StepClassification(StepStatus.BREAK, BreakReason(BreakKind.ERROR_RATE, result.error_rate))


def classify_step(result: StepResult, thresholds: ThresholdConfig) -> StepClassification:
    """Assign a status to one step. Checks run in order and the first match wins."""
    if result.hung:
        return StepClassification(StepStatus.HUNG, BreakReason(BreakKind.HUNG))

    if result.p99_latency_ms == 0 and result.avg_latency_ms == 0 and result.actual_rate > 0:
        return StepClassification(StepStatus.GONE, BreakReason(BreakKind.NO_RESPONSES))

    if result.error_rate > thresholds.max_error_rate:
        return _classify_error_rate(result)

    if result.p99_latency_ms > thresholds.max_p99_ms:
        return StepClassification(
            StepStatus.BREAK, BreakReason(BreakKind.P99_LATENCY, result.p99_latency_ms)
        )

    if result.target_rate > 0:
        actual_pct = result.actual_rate / result.target_rate * 100.0
        if actual_pct < MIN_THROUGHPUT_PCT:
            return StepClassification(
                StepStatus.BREAK, BreakReason(BreakKind.THROUGHPUT_DEGRADATION, actual_pct)
            )

    error_warning = result.error_rate > thresholds.max_error_rate * ERROR_WARNING_FACTOR
    latency_warning = result.p99_latency_ms > thresholds.max_p99_ms * LATENCY_WARNING_FACTOR
    if error_warning or latency_warning:
        return StepClassification(StepStatus.WARNING)

    return StepClassification(StepStatus.OK)
