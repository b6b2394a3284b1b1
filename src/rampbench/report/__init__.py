from __future__ import annotations

from rampbench.report.charts import breaking_point_figure, save_figure
from rampbench.report.console import ConsoleReporter
from rampbench.report.text import (
    format_duration,
    format_latency,
    format_number,
    generate_report_text,
    save_report,
    unique_report_paths,
)

__all__ = [
    "ConsoleReporter",
    "breaking_point_figure",
    "format_duration",
    "format_latency",
    "format_number",
    "generate_report_text",
    "save_figure",
    "save_report",
    "unique_report_paths",
]
