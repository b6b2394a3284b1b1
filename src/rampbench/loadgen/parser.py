"""Extraction of step metrics from the load generator's text report.

The external tool prints a human-readable summary, e.g. for ``oha``::

    Summary:
      Success rate: 100.00%
      Slowest:      776.2771 ms
      Average:      239.4548 ms
      Requests/sec: 9.9827
      Size/sec:     12.34 KiB

    Response time distribution:
      50.00% in 196.0308 ms
      90.00% in 378.1813 ms
      99.00% in 776.2771 ms

    Status code distribution:
      [200] 28 responses

    Error distribution:
      [2] aborted due to deadline

Each field is located by its own regular expression in an ``OutputFormat``,
so a different tool (or tool version) only needs a different format object.
Missing fields keep their zero defaults; parsing never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping

from rampbench.metrics import StepResult, sort_by_count

UNIT_TO_MS: Mapping[str, float] = {
    "us": 0.001,
    "ms": 1.0,
    "s": 1000.0,
    "m": 60_000.0,
}

_TIME = r"([\d.]+)\s*(us|ms|s|m)"


def _percentile_pattern(pct: int) -> re.Pattern[str]:
    return re.compile(rf"{pct}\.00%\s+in\s+{_TIME}")


@dataclass(frozen=True, slots=True)
class OutputFormat:
    name: str
    success_rate: re.Pattern[str]
    average: re.Pattern[str]
    slowest: re.Pattern[str]
    requests_per_sec: re.Pattern[str]
    status_codes: re.Pattern[str]
    error_section: re.Pattern[str]
    error_count: re.Pattern[str]
    transfer_rate: re.Pattern[str]
    percentiles: Mapping[int, re.Pattern[str]] = field(default_factory=dict)


OHA_FORMAT = OutputFormat(
    name="oha",
    success_rate=re.compile(r"Success rate:\s+([\d.]+)%"),
    average=re.compile(rf"Average:\s+{_TIME}"),
    slowest=re.compile(rf"Slowest:\s+{_TIME}"),
    requests_per_sec=re.compile(r"Requests/sec:\s+([\d.]+)"),
    status_codes=re.compile(r"\[(\d+)\]\s+(\d+)\s+responses?"),
    error_section=re.compile(r"Error distribution:\s*\n((?:\s+\[\d+\][^\n]+\n?)+)"),
    error_count=re.compile(r"\[(\d+)\]"),
    transfer_rate=re.compile(r"Size/sec:\s+(.+)"),
    percentiles={pct: _percentile_pattern(pct) for pct in (50, 90, 99)},
)


def to_ms(value: float, unit: str) -> float:
    return value * UNIT_TO_MS.get(unit, 1.0)


def _to_float(text: str, default: float = 0.0) -> float:
    try:
        return float(text)
    except ValueError:
        return default


def _time_ms(pattern: re.Pattern[str], text: str) -> float:
    match = pattern.search(text)
    if match is None:
        return 0.0
    return to_ms(_to_float(match.group(1)), match.group(2))


def _success_rate(fmt: OutputFormat, text: str) -> float | None:
    match = fmt.success_rate.search(text)
    if match is None:
        return None
    return _to_float(match.group(1), 100.0)


def _status_counts(fmt: OutputFormat, text: str) -> list[tuple[int, int]]:
    return [(int(code), int(count)) for code, count in fmt.status_codes.findall(text)]


def _transport_errors(fmt: OutputFormat, text: str) -> int:
    section = fmt.error_section.search(text)
    if section is None:
        return 0
    return sum(int(count) for count in fmt.error_count.findall(section.group(1)))


def parse_output(
    text: str,
    target_rate: int,
    duration_sec: int,
    fmt: OutputFormat = OHA_FORMAT,
) -> StepResult:
    success = _success_rate(fmt, text)
    error_rate = 100.0 - success if success is not None else 0.0

    rps = fmt.requests_per_sec.search(text)
    actual_rate = _to_float(rps.group(1)) if rps else 0.0

    total = 0
    errors = 0
    error_codes: list[tuple[int, int]] = []
    for code, count in _status_counts(fmt, text):
        total += count
        if not 200 <= code < 400:
            errors += count
            error_codes.append((code, count))

    # Transport failures (timeouts, resets) were attempted but got no status code.
    transport = _transport_errors(fmt, text)
    errors += transport
    total += transport

    if total > 0 and errors > 0:
        error_rate = errors / total * 100.0
    if total == 0 and actual_rate > 0:
        total = round(actual_rate * duration_sec)

    transfer = fmt.transfer_rate.search(text)
    return StepResult(
        target_rate=target_rate,
        actual_rate=actual_rate,
        avg_latency_ms=_time_ms(fmt.average, text),
        p50_latency_ms=_time_ms(fmt.percentiles[50], text) if 50 in fmt.percentiles else 0.0,
        p90_latency_ms=_time_ms(fmt.percentiles[90], text) if 90 in fmt.percentiles else 0.0,
        p99_latency_ms=_time_ms(fmt.percentiles[99], text) if 99 in fmt.percentiles else 0.0,
        max_latency_ms=_time_ms(fmt.slowest, text),
        total_requests=total,
        errors=errors,
        error_rate=error_rate,
        transfer_rate=transfer.group(1).strip() if transfer else "",
        error_status_codes=sort_by_count(error_codes),
    )
