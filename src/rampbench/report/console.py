from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, TaskID, TextColumn

from rampbench.analysis import StepClassification, StepStatus
from rampbench.config import BenchmarkConfig
from rampbench.loadgen.probe import ProbeResult
from rampbench.loadgen.runner import RampRun
from rampbench.metrics import StepResult
from rampbench.report.text import LEGEND_LINES, SEPARATOR, config_lines, result_cells, summary_lines, table_header

STATUS_STYLES = {
    StepStatus.OK: "green",
    StepStatus.WARNING: "yellow",
}
TERMINAL_STYLE = "bold red"


@dataclass(slots=True)
class ConsoleReporter:
    """Live rich output for a ramp: one table row per step, a progress bar while a step runs."""

    console: Console = field(default_factory=Console)
    total_urls: int = 1
    _progress: Progress | None = None
    _task: TaskID | None = None
    _url_index: int = 0

    def print_header(self, config: BenchmarkConfig) -> None:
        self.console.rule(style="dim")
        self.console.print("[bold]rampbench - HTTP Load Testing with Breaking Point Detection[/bold]")
        self.console.rule(style="dim")
        for line in config_lines(config):
            label, value = line[:13], line[13:]
            self.console.print(f"[cyan]{label}[/cyan]{value}", highlight=False)
        self.console.rule(style="dim")

    def print_legend(self) -> None:
        self.console.print()
        self.console.print(f"[dim]{SEPARATOR}[/dim]\n[bold]LEGEND[/bold]\n[dim]{SEPARATOR}[/dim]")
        for line in LEGEND_LINES:
            self.console.print(line, highlight=False)
        self.console.print(f"[dim]{SEPARATOR}[/dim]")

    def print_probes(self, probes: Sequence[ProbeResult]) -> None:
        for probe in probes:
            if probe.reachable:
                self.console.print(
                    f"[green]✓[/green] {probe.url} answered {probe.status_code} in {probe.latency_ms:.0f}ms"
                )
            else:
                self.console.print(f"[yellow]![/yellow] {probe.url} did not answer: {escape(probe.error or '')}")

    def print_saved(self, what: str, path: Path) -> None:
        self.console.print(f"[green]✓[/green] {what} saved to: {path}")

    def print_error(self, message: str) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {escape(message)}", highlight=False)

    def run_started(self, url: str, rates: list[int]) -> None:
        self._url_index += 1
        if self.total_urls > 1:
            self.console.print()
            self.console.rule(style="dim")
            self.console.print(
                f"[bold cyan]BENCHMARKING[/bold cyan] [{self._url_index}/{self.total_urls}] [bold]{url}[/bold]",
                highlight=False,
            )
            self.console.rule(style="dim")
        self.console.print()
        self.console.print(f"Starting benchmark: {len(rates)} steps from {rates[0]} to {rates[-1]} req/s")
        self.console.print()
        for line in table_header(rule="─"):
            self.console.print(line, highlight=False)

    def step_started(self, index: int, total: int, rate: int, duration_sec: int) -> None:
        self._progress = Progress(
            TextColumn("  "),
            BarColumn(bar_width=20),
            TextColumn("{task.completed:.0f}s/{task.total:.0f}s @ {task.fields[rate]} req/s"),
            TextColumn("[dim]step {task.fields[step]}/{task.fields[steps]}[/dim]"),
            console=self.console,
            transient=True,
        )
        self._progress.start()
        self._task = self._progress.add_task("step", total=duration_sec, rate=rate, step=index + 1, steps=total)

    def step_tick(self, elapsed_sec: int) -> None:
        if self._progress is not None and self._task is not None:
            self._progress.update(self._task, completed=elapsed_sec)

    def _stop_progress(self) -> None:
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task = None

    def step_finished(self, result: StepResult, classification: StepClassification) -> None:
        self._stop_progress()
        cells = result_cells(result, classification)
        if result.error_rate > 0:
            cells[7] = f"[red]{cells[7]}[/red]"
        style = STATUS_STYLES.get(classification.status, TERMINAL_STYLE)
        cells[8] = f"[{style}]{cells[8]}[/{style}]"
        self.console.print(" ".join(cells), highlight=False)

    def step_aborted(self, rate: int, error: Exception) -> None:
        self._stop_progress()
        self.console.print(f"[red]✗[/red] Failed at {rate} req/s: {escape(str(error))}", highlight=False)

    def cooling_down(self, seconds: int) -> None:
        self.console.print(f"  [dim]Cooling down ({seconds}s)...[/dim]")

    def url_skipped(self, url: str, error: Exception) -> None:
        self.console.print(f"[red]✗[/red] Warmup failed for {url}: {escape(str(error))}", highlight=False)

    def run_finished(self, run: RampRun) -> None:
        self.console.print()
        self.console.print(f"[dim]{SEPARATOR}[/dim]\n[bold]RESULTS[/bold]\n[dim]{SEPARATOR}[/dim]")
        for line in summary_lines(run.summary):
            label, value = line[:19], line[19:]
            self.console.print(f"[cyan]{label}[/cyan]{value}", highlight=False)
