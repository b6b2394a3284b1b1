from __future__ import annotations

from hypothesis import given, strategies as st

from rampbench.analysis import (
    BreakKind,
    StepStatus,
    classify_step,
    dominant_error_code,
    is_terminal,
    stops_run,
)
from rampbench.config import ThresholdConfig
from rampbench.metrics import StepResult

THRESHOLDS = ThresholdConfig(max_error_rate=5.0, max_p99_ms=1000)


def _healthy(rate: int = 100, **overrides: object) -> StepResult:
    fields = dict(
        target_rate=rate,
        actual_rate=float(rate),
        avg_latency_ms=20.0,
        p50_latency_ms=15.0,
        p90_latency_ms=40.0,
        p99_latency_ms=80.0,
        max_latency_ms=120.0,
    )
    fields.update(overrides)
    return StepResult(**fields)  # type: ignore[arg-type]


def test_hung_beats_every_other_rule() -> None:
    result = _healthy(hung=True, error_rate=100.0, error_status_codes=((429, 50),))
    classification = classify_step(result, THRESHOLDS)
    assert classification.status is StepStatus.HUNG
    assert classification.break_reason.kind is BreakKind.HUNG


def test_hung_placeholder_is_hung() -> None:
    assert classify_step(StepResult.hung_at(200), THRESHOLDS).status is StepStatus.HUNG


def test_throughput_without_latency_is_gone() -> None:
    result = StepResult(target_rate=100, actual_rate=90.0)
    classification = classify_step(result, THRESHOLDS)
    assert classification.status is StepStatus.GONE
    assert classification.break_reason.kind is BreakKind.NO_RESPONSES


def test_rate_limited_when_429_dominates() -> None:
    result = _healthy(error_rate=40.0, error_status_codes=((429, 40), (500, 2)))
    classification = classify_step(result, THRESHOLDS)
    assert classification.status is StepStatus.RATE_LIMITED
    assert classification.break_reason.kind is BreakKind.RATE_LIMITED
    assert classification.break_reason.value == 40.0


def test_blocked_when_403_dominates() -> None:
    result = _healthy(error_rate=12.0, error_status_codes=((403, 12),))
    assert classify_step(result, THRESHOLDS).status is StepStatus.BLOCKED


def test_other_errors_are_a_break() -> None:
    result = _healthy(error_rate=9.0, error_status_codes=((503, 9), (429, 1)))
    classification = classify_step(result, THRESHOLDS)
    assert classification.status is StepStatus.BREAK
    assert classification.break_reason.kind is BreakKind.ERROR_RATE
    assert classification.break_reason.describe() == "Error rate exceeded threshold (9.0%)"


def test_transport_errors_only_are_a_break() -> None:
    result = _healthy(error_rate=50.0)
    assert dominant_error_code(result) is None
    assert classify_step(result, THRESHOLDS).status is StepStatus.BREAK


def test_p99_over_threshold_is_a_break() -> None:
    classification = classify_step(_healthy(p99_latency_ms=1500.0), THRESHOLDS)
    assert classification.status is StepStatus.BREAK
    assert classification.break_reason.kind is BreakKind.P99_LATENCY
    assert classification.break_reason.describe() == "p99 latency exceeded threshold (1500ms)"


def test_throughput_degradation_is_a_break() -> None:
    classification = classify_step(_healthy(rate=100, actual_rate=60.0), THRESHOLDS)
    assert classification.status is StepStatus.BREAK
    assert classification.break_reason.kind is BreakKind.THROUGHPUT_DEGRADATION
    assert classification.break_reason.value == 60.0


def test_warning_band() -> None:
    assert classify_step(_healthy(error_rate=3.0), THRESHOLDS).status is StepStatus.WARNING
    assert classify_step(_healthy(p99_latency_ms=800.0), THRESHOLDS).status is StepStatus.WARNING


def test_healthy_step_is_ok() -> None:
    classification = classify_step(_healthy(error_rate=1.0, actual_rate=75.0), THRESHOLDS)
    assert classification.status is StepStatus.OK
    assert classification.break_reason.kind is BreakKind.NONE


def test_error_rate_at_threshold_is_not_a_break() -> None:
    assert classify_step(_healthy(error_rate=5.0), THRESHOLDS).status is StepStatus.WARNING


def test_gone_is_terminal_but_does_not_stop_the_run() -> None:
    assert is_terminal(StepStatus.GONE)
    assert not stops_run(StepStatus.GONE)
    for status in (StepStatus.BREAK, StepStatus.RATE_LIMITED, StepStatus.BLOCKED, StepStatus.HUNG):
        assert is_terminal(status)
        assert stops_run(status)
    for status in (StepStatus.OK, StepStatus.WARNING):
        assert not is_terminal(status)
        assert not stops_run(status)


@given(
    actual=st.floats(min_value=0, max_value=10_000, allow_nan=False),
    p99=st.floats(min_value=0, max_value=10_000, allow_nan=False),
    error_rate=st.floats(min_value=0, max_value=100, allow_nan=False),
)
def test_classification_is_deterministic(actual: float, p99: float, error_rate: float) -> None:
    result = _healthy(actual_rate=actual, p99_latency_ms=p99, error_rate=error_rate)
    assert classify_step(result, THRESHOLDS) == classify_step(result, THRESHOLDS)
