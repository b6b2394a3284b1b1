from __future__ import annotations

from dataclasses import dataclass

ErrorCodeCounts = tuple[tuple[int, int], ...]


@dataclass(frozen=True, slots=True)
class StepResult:
    target_rate: int
    actual_rate: float = 0.0
    # Latencies of 0.0 mean "not observed".
    avg_latency_ms: float = 0.0
    p50_latency_ms: float = 0.0
    p90_latency_ms: float = 0.0
    p99_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    total_requests: int = 0
    errors: int = 0
    error_rate: float = 0.0
    transfer_rate: str = ""
    error_status_codes: ErrorCodeCounts = ()
    hung: bool = False

    @classmethod
    def hung_at(cls, target_rate: int) -> StepResult:
        return cls(target_rate=target_rate, error_rate=100.0, hung=True)
