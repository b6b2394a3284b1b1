from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from rampbench.metrics.models import ErrorCodeCounts, StepResult


def sort_by_count(counts: Iterable[tuple[int, int]]) -> ErrorCodeCounts:
    # sorted() is stable with reverse=True, so equal counts keep first-seen order.
    return tuple(sorted(counts, key=lambda item: item[1], reverse=True))


def aggregate_error_codes(results: Iterable[StepResult]) -> ErrorCodeCounts:
    totals: dict[int, int] = defaultdict(int)
    for result in results:
        for code, count in result.error_status_codes:
            totals[code] += count
    return sort_by_count(totals.items())


def total_requests(results: Iterable[StepResult]) -> int:
    return sum(result.total_requests for result in results)
