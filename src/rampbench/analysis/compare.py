from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import pandas as pd


@dataclass(frozen=True, slots=True)
class Regression:
    metric: str
    delta_pct: float
    message: str


@dataclass(frozen=True, slots=True)
class _Rule:
    column: str
    # Relative change that counts as a regression.
    limit: float
    higher_is_worse: bool
    message: str


_RULES = (
    _Rule("p99_latency_ms", 0.2, True, "p99 latency increased materially"),
    _Rule("error_rate", 0.3, True, "error rate regression detected"),
    _Rule("actual_rate", 0.2, False, "throughput regression detected"),
)


def compare_runs(base: pd.DataFrame, candidate: pd.DataFrame) -> list[Regression]:
    """Compare two runs' step tables over the target rates both of them tested."""
    if base.empty or candidate.empty:
        return []
    merged = base.merge(candidate, on="target_rate", suffixes=("_base", "_cand"))
    if merged.empty:
        return []
    regressions: list[Regression] = []
    for rule in _RULES:
        before = merged[f"{rule.column}_base"].mean()
        after = merged[f"{rule.column}_cand"].mean()
        if not before > 0:
            continue
        change = (after - before) / before
        if not rule.higher_is_worse:
            change = -change
        if change > rule.limit:
            regressions.append(Regression(rule.column, change * 100, rule.message))
    return regressions


def breaking_point_regression(
    base: Mapping[str, Any],
    candidate: Mapping[str, Any],
) -> Regression | None:
    """Flag a candidate run that broke at a lower rate than the baseline.

    A baseline that never broke is compared against its last stable rate.
    """
    base_rate = base.get("breaking_point_rate") or base.get("last_stable_rate")
    cand_rate = candidate.get("breaking_point_rate")
    if not base_rate or cand_rate is None or cand_rate >= base_rate:
        return None
    return Regression(
        metric="breaking_point_rate",
        delta_pct=(base_rate - cand_rate) / base_rate * 100,
        message=f"breaking point dropped from {int(base_rate)} to {int(cand_rate)} req/s",
    )
