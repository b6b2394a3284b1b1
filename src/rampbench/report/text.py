from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Sequence

from rampbench.analysis import RunSummary, StepClassification
from rampbench.config import BenchmarkConfig
from rampbench.loadgen.runner import RampRun
from rampbench.metrics import StepResult

SEPARATOR = "═" * 79

TABLE_COLUMNS = ("Target", "Actual", "Avg Lat", "p50", "p90", "p99", "Max", "Err Rate", "Status")
TABLE_WIDTHS = (7, 9, 9, 8, 8, 8, 8, 9, 7)

# Bounded so a directory full of reports cannot loop forever.
MAX_REPORT_SUFFIX = 9999

LEGEND_LINES = (
    "Target      - Requested rate in requests/second",
    "Actual      - Achieved throughput (lower than target = saturation)",
    "Avg Lat     - Mean response latency",
    "p50/p90/p99 - Latency percentiles (50% / 90% / 99% of requests faster than this)",
    "Max         - Maximum observed latency",
    "Err Rate    - Non-2xx responses + connection/timeout errors as percentage",
    "",
    "Status Codes:",
    "  OK    = under threshold        WARN  = approaching threshold",
    "  BREAK = server breaking        RATE  = rate limited (429)",
    "  BLOCK = blocked by WAF (403)   HANG  = server hung (timed out)",
    "  GONE  = no responses received",
    "",
    "Expected Error Rates by Service Type:",
    "  Payment/Checkout:         < 0.1%",
    "  Core App Functionality:   < 0.5%",
    "  APIs:                     < 1%",
    "  Non-critical Features:    < 2%",
    "",
    "Recommended rate is 80% of last stable rate for safety margin.",
)


def format_latency(ms: float) -> str:
    if ms == 0:
        return "-"
    if ms < 1:
        return f"{ms * 1000:.0f}us"
    if ms < 1000:
        return f"{ms:.0f}ms"
    return f"{ms / 1000:.1f}s"


def format_number(n: int) -> str:
    return f"{n:,}"


def format_duration(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def format_error_codes(codes: Iterable[tuple[int, int]]) -> str:
    return ", ".join(f"{code} ({format_number(count)})" for code, count in codes)


def table_header(rule: str = "-") -> list[str]:
    names = " ".join(f"{name:>{width}}" for name, width in zip(TABLE_COLUMNS, TABLE_WIDTHS))
    rules = " ".join(rule * width for width in TABLE_WIDTHS)
    return [names, rules]


def result_cells(result: StepResult, classification: StepClassification) -> list[str]:
    return [
        f"{result.target_rate:>7}",
        f"{result.actual_rate:>9.1f}",
        f"{format_latency(result.avg_latency_ms):>9}",
        f"{format_latency(result.p50_latency_ms):>8}",
        f"{format_latency(result.p90_latency_ms):>8}",
        f"{format_latency(result.p99_latency_ms):>8}",
        f"{format_latency(result.max_latency_ms):>8}",
        f"{result.error_rate:>8.2f}%",
        f"{classification.status.value:>7}",
    ]


def breaking_point_label(summary: RunSummary) -> str:
    if summary.was_rate_limited:
        return "Rate limited at:"
    if summary.was_blocked:
        return "Blocked at:"
    return "Breaking point:"


def summary_lines(summary: RunSummary) -> list[str]:
    lines: list[str] = []
    if summary.breaking_point_rate is not None:
        lines.append(
            f"{breaking_point_label(summary):<19} {summary.breaking_point_rate} req/s "
            f"({summary.break_reason.describe()})"
        )
    else:
        lines.append(f"{'Breaking point:':<19} Not reached (consider increasing max rate)")
    if summary.aggregated_error_codes:
        lines.append(f"{'HTTP errors:':<19} {format_error_codes(summary.aggregated_error_codes)}")
    if summary.last_stable_rate is not None:
        lines.append(f"{'Last stable rate:':<19} {summary.last_stable_rate} req/s")
    if summary.recommended_rate is not None:
        lines.append(f"{'Recommended rate:':<19} {summary.recommended_rate} req/s (80% of last stable)")
    lines.append(f"{'Total requests:':<19} ~{format_number(summary.total_requests)}")
    lines.append(f"{'Total duration:':<19} {format_duration(summary.total_duration_seconds)}")
    return lines


def config_lines(config: BenchmarkConfig) -> list[str]:
    lines: list[str] = []
    if len(config.urls) == 1:
        lines.append(f"{'Target:':<13} {config.urls[0]}")
    else:
        lines.append(f"{'Targets:':<13} {len(config.urls)} URLs")
        lines.extend(f"{'':<13} {i}. {url}" for i, url in enumerate(config.urls, start=1))
    ramping = config.ramping
    lines.append(f"{'Method:':<13} {config.method.value}")
    lines.append(f"{'Mode:':<13} {ramping.mode.value.capitalize()} ramping")
    lines.append(f"{'Range:':<13} {ramping.start_rate} -> {ramping.max_rate} req/s")
    lines.append(f"{'Duration:':<13} {ramping.duration_seconds}s per step")
    lines.append(
        f"{'Break when:':<13} Error rate > {config.thresholds.max_error_rate}% "
        f"OR p99 > {config.thresholds.max_p99_ms}ms"
    )
    return lines


def generate_report_text(config: BenchmarkConfig, runs: Sequence[RampRun]) -> str:
    out = [SEPARATOR, "rampbench - HTTP Load Testing Report", SEPARATOR, ""]
    out.extend(config_lines(config))
    out.append(SEPARATOR)

    for i, run in enumerate(runs, start=1):
        out.append("")
        if len(runs) > 1:
            out.extend([SEPARATOR, f"[{i}/{len(runs)}] {run.url}", SEPARATOR])
        out.append("")
        out.extend(table_header())
        for result, classification in zip(run.results, run.classifications):
            out.append(" ".join(result_cells(result, classification)))
        if run.error:
            out.append(f"Run aborted: {run.error}")
        out.append("")
        out.append("RESULTS:")
        out.extend(f"  {line}" for line in summary_lines(run.summary))

    out.extend(["", SEPARATOR, "LEGEND", SEPARATOR])
    out.extend(LEGEND_LINES)
    out.append(SEPARATOR)
    return "\n".join(out) + "\n"


def save_report(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def safe_report_name(url: str, max_len: int = 100) -> str:
    name = url.replace("https://", "").replace("http://", "")
    name = re.sub(r"[/:?&=# ]", "_", name).rstrip("_")
    return name[:max_len]


def unique_report_paths(directory: Path, name: str) -> tuple[Path, Path]:
    """First ``(<name>.txt, <name>_graph.html)`` pair where neither file exists yet."""
    txt_path = directory / f"{name}.txt"
    chart_path = directory / f"{name}_graph.html"
    counter = 2
    while (txt_path.exists() or chart_path.exists()) and counter <= MAX_REPORT_SUFFIX:
        txt_path = directory / f"{name}.{counter}.txt"
        chart_path = directory / f"{name}.{counter}_graph.html"
        counter += 1
    return txt_path, chart_path
