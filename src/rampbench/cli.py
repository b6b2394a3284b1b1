from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from rampbench.analysis import breaking_point_regression, compare_runs
from rampbench.config import (
    AuthConfig,
    AuthType,
    BenchmarkConfig,
    HttpMethod,
    RampingConfig,
    RampingMode,
    ThresholdConfig,
    ensure_protocol,
    resolve_user_agent,
)
from rampbench.errors import RampbenchError
from rampbench.loadgen.oha import DEFAULT_BINARY, check_installed
from rampbench.loadgen.probe import probe_targets
from rampbench.loadgen.runner import RampRun, run_suite
from rampbench.report import (
    ConsoleReporter,
    breaking_point_figure,
    generate_report_text,
    save_figure,
    save_report,
    unique_report_paths,
)
from rampbench.report.text import safe_report_name
from rampbench.storage import DEFAULT_DB_PATH, Storage

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rampbench",
        description="HTTP load testing with automatic breaking point detection using oha",
    )
    parser.add_argument("-u", "--url", action="append", default=[], help="Target URL (repeatable)")
    parser.add_argument("-m", "--method", choices=[m.value for m in HttpMethod], type=str.upper, default="GET")
    parser.add_argument("-b", "--body", help="Request body (for POST, PUT, PATCH)")
    parser.add_argument("--user-agent", default="rampbench", help="User-Agent preset or custom string")

    parser.add_argument("--auth-type", choices=[a.value for a in AuthType], default="none")
    parser.add_argument("--auth-user")
    parser.add_argument("--auth-pass")
    parser.add_argument("--auth-token")
    parser.add_argument("--auth-header", help='Custom auth header, e.g. "X-API-Key: secret"')
    parser.add_argument("-H", "--header", dest="headers", action="append", default=[])

    parser.add_argument("--mode", choices=[m.value for m in RampingMode], default="linear")
    parser.add_argument("--start-rate", type=int, default=50)
    parser.add_argument("--max-rate", type=int, default=5000)
    parser.add_argument("--step", type=int, default=50)
    parser.add_argument("-d", "--duration", type=int, default=30, help="Seconds per step")
    parser.add_argument("-c", "--connections", type=int, default=100)

    parser.add_argument("--max-error-rate", type=float, default=5.0)
    parser.add_argument("--max-p99", type=int, default=3000, help="Maximum p99 latency (ms)")
    parser.add_argument("--warmup", type=int, default=0)
    parser.add_argument("--cooldown", type=int, default=0)

    parser.add_argument("-o", "--output-dir", help="Directory for the text report and chart")
    parser.add_argument("-n", "--name", help="Report base name")
    parser.add_argument("--notes", default="")
    parser.add_argument("--oha-bin", default=DEFAULT_BINARY)
    parser.add_argument("--db", type=Path, default=DEFAULT_DB_PATH)
    parser.add_argument("--no-store", action="store_true", help="Do not record the run in the database")
    parser.add_argument("--no-probe", action="store_true", help="Skip the reachability probe")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        default="WARNING",
    )

    parser.add_argument("--list-runs", action="store_true", help="List stored runs and exit")
    parser.add_argument("--compare", nargs=2, metavar=("BASE", "CANDIDATE"), help="Compare two stored runs")
    return parser


def _build_config(args: argparse.Namespace) -> BenchmarkConfig:
    return BenchmarkConfig(
        urls=tuple(ensure_protocol(u) for u in args.url),
        method=HttpMethod(args.method),
        body=args.body,
        user_agent=resolve_user_agent(args.user_agent),
        auth=AuthConfig(
            auth_type=AuthType(args.auth_type),
            username=args.auth_user,
            password=args.auth_pass,
            token=args.auth_token,
            custom_header=args.auth_header,
        ),
        headers=tuple(args.headers),
        ramping=RampingConfig(
            mode=RampingMode(args.mode),
            start_rate=args.start_rate,
            max_rate=args.max_rate,
            step=args.step,
            duration_seconds=args.duration,
            connections=args.connections,
        ),
        thresholds=ThresholdConfig(max_error_rate=args.max_error_rate, max_p99_ms=args.max_p99),
        warmup_seconds=args.warmup,
        cooldown_seconds=args.cooldown,
        report_dir=args.output_dir,
        report_name=args.name,
        notes=args.notes,
    )


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def _save_reports(config: BenchmarkConfig, runs: list[RampRun], reporter: ConsoleReporter) -> None:
    if not config.report_dir or not runs:
        return
    name = config.report_name or safe_report_name(runs[0].url)
    txt_path, chart_path = unique_report_paths(Path(config.report_dir), name)
    try:
        save_report(txt_path, generate_report_text(config, runs))
    except OSError as exc:
        logger.debug("Could not write %s", txt_path, exc_info=True)
        reporter.print_error(f"Failed to save report: {exc}")
    else:
        reporter.print_saved("Report", txt_path)

    fig = breaking_point_figure({run.url: run.to_frame() for run in runs}, config.thresholds)
    try:
        save_figure(fig, chart_path)
    except OSError as exc:
        logger.debug("Could not write %s", chart_path, exc_info=True)
        reporter.print_error(f"Failed to save graph: {exc}")
    else:
        reporter.print_saved("Graph", chart_path)


def _run(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    if not args.url:
        parser.error("--url is required to run a benchmark")
    check_installed(args.oha_bin)
    config = _build_config(args)
    reporter = ConsoleReporter(total_urls=len(config.urls))
    reporter.print_header(config)
    reporter.print_legend()

    if not args.no_probe:
        reporter.print_probes(asyncio.run(probe_targets(config)))

    storage = None if args.no_store else Storage(args.db)
    runs = asyncio.run(run_suite(config, binary=args.oha_bin, reporter=reporter, storage=storage))
    _save_reports(config, runs, reporter)
    if storage is not None:
        for run in runs:
            print(f"Run complete: {run.run_id}")


def _list_runs(db_path: Path) -> None:
    runs = Storage(db_path).list_runs()
    if runs.empty:
        print("No runs stored yet.")
        return
    table = Table(title="Stored runs")
    for column in runs.columns:
        table.add_column(str(column))
    for row in runs.itertuples(index=False):
        table.add_row(*["" if value is None else str(value) for value in row])
    Console().print(table)


def _compare(db_path: Path, base_id: str, candidate_id: str) -> None:
    storage = Storage(db_path)
    regressions = compare_runs(storage.load_steps(base_id), storage.load_steps(candidate_id))
    base_summary = storage.load_summary(base_id)
    cand_summary = storage.load_summary(candidate_id)
    if base_summary and cand_summary:
        breaking = breaking_point_regression(base_summary, cand_summary)
        if breaking is not None:
            regressions.append(breaking)
    console = Console()
    if not regressions:
        console.print("[green]No regressions detected[/green]")
        return
    for reg in regressions:
        console.print(f"[red]{reg.message}[/red] ({reg.delta_pct:.1f}% on {reg.metric})")


def main(argv: Sequence[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    try:
        if args.list_runs:
            _list_runs(args.db)
        elif args.compare:
            _compare(args.db, *args.compare)
        else:
            _run(args, parser)
    except RampbenchError as exc:
        ConsoleReporter(console=Console(stderr=True)).print_error(str(exc))
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        Console(stderr=True).print("\n[yellow]Benchmark stopped by user.[/yellow]")
        raise SystemExit(130) from None


if __name__ == "__main__":
    main()
