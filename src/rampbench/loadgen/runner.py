from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol

import pandas as pd

from rampbench.analysis import RunSummary, StepClassification, classify_step, stops_run, summarize_run
from rampbench.config import BenchmarkConfig
from rampbench.errors import EmptyRateSequenceError, SpawnError, WarmupError
from rampbench.loadgen.oha import DEFAULT_BINARY, HANG_GRACE_SEC, run_step, run_warmup
from rampbench.metrics import StepResult
from rampbench.patterns import rates_for

if TYPE_CHECKING:
    from rampbench.storage import Storage

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

STEP_COLUMNS = [
    "run_id",
    "step",
    "target_rate",
    "actual_rate",
    "avg_latency_ms",
    "p50_latency_ms",
    "p90_latency_ms",
    "p99_latency_ms",
    "max_latency_ms",
    "total_requests",
    "errors",
    "error_rate",
    "transfer_rate",
    "hung",
    "status",
    "break_reason",
    "error_codes_json",
]


class RunReporter(Protocol):
    def run_started(self, url: str, rates: list[int]) -> None:
        ...

    def step_started(self, index: int, total: int, rate: int, duration_sec: int) -> None:
        ...

    def step_tick(self, elapsed_sec: int) -> None:
        ...

    def step_finished(self, result: StepResult, classification: StepClassification) -> None:
        ...

    def step_aborted(self, rate: int, error: Exception) -> None:
        ...

    def cooling_down(self, seconds: int) -> None:
        ...

    def run_finished(self, run: RampRun) -> None:
        ...

    def url_skipped(self, url: str, error: Exception) -> None:
        ...


@dataclass(frozen=True, slots=True)
class RampRun:
    run_id: str
    url: str
    results: tuple[StepResult, ...]
    classifications: tuple[StepClassification, ...]
    summary: RunSummary
    error: str | None = None

    def to_frame(self) -> pd.DataFrame:
        """One row per step, in the column order of the ``step_results`` table."""
        return pd.DataFrame(
            [
                {
                    "run_id": self.run_id,
                    "step": i,
                    "target_rate": r.target_rate,
                    "actual_rate": r.actual_rate,
                    "avg_latency_ms": r.avg_latency_ms,
                    "p50_latency_ms": r.p50_latency_ms,
                    "p90_latency_ms": r.p90_latency_ms,
                    "p99_latency_ms": r.p99_latency_ms,
                    "max_latency_ms": r.max_latency_ms,
                    "total_requests": r.total_requests,
                    "errors": r.errors,
                    "error_rate": r.error_rate,
                    "transfer_rate": r.transfer_rate,
                    "hung": r.hung,
                    "status": c.status.value,
                    "break_reason": c.break_reason.describe(),
                    "error_codes_json": json.dumps([list(pair) for pair in r.error_status_codes]),
                }
                for i, (r, c) in enumerate(zip(self.results, self.classifications))
            ],
            columns=STEP_COLUMNS,
        )


def _new_run_id() -> str:
    return uuid.uuid4().hex


async def run_ramp(
    config: BenchmarkConfig,
    url: str,
    *,
    binary: str = DEFAULT_BINARY,
    grace_sec: float = HANG_GRACE_SEC,
    reporter: RunReporter | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> RampRun:
    rates = rates_for(config.ramping).rates
    if not rates:
        msg = "No rates to test. Check your start/max rate configuration."
        raise EmptyRateSequenceError(msg)

    await run_warmup(config, url, binary=binary, grace_sec=grace_sec)

    if reporter:
        reporter.run_started(url, rates)
    duration = config.ramping.duration_seconds
    results: list[StepResult] = []
    classifications: list[StepClassification] = []
    error: str | None = None
    for i, rate in enumerate(rates):
        if reporter:
            reporter.step_started(i, len(rates), rate, duration)
        try:
            result = await run_step(
                config,
                url,
                rate,
                binary=binary,
                grace_sec=grace_sec,
                on_tick=reporter.step_tick if reporter else None,
            )
        except SpawnError as exc:
            logger.error("Failed at %d req/s: %s", rate, exc)
            if reporter:
                reporter.step_aborted(rate, exc)
            error = str(exc)
            break

        classification = classify_step(result, config.thresholds)
        logger.info(
            "%s @ %d req/s: %s %s",
            url,
            rate,
            classification.status.value,
            classification.break_reason.describe(),
        )
        results.append(result)
        classifications.append(classification)
        if reporter:
            reporter.step_finished(result, classification)

        if stops_run(classification.status):
            break
        if config.cooldown_seconds > 0 and i < len(rates) - 1:
            if reporter:
                reporter.cooling_down(config.cooldown_seconds)
            await sleep(config.cooldown_seconds)

    run = RampRun(
        run_id=_new_run_id(),
        url=url,
        results=tuple(results),
        classifications=tuple(classifications),
        summary=summarize_run(results, classifications, duration),
        error=error,
    )
    if reporter:
        reporter.run_finished(run)
    return run


async def run_suite(
    config: BenchmarkConfig,
    *,
    binary: str = DEFAULT_BINARY,
    grace_sec: float = HANG_GRACE_SEC,
    reporter: RunReporter | None = None,
    storage: Storage | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> list[RampRun]:
    """Ramp every configured URL in turn. A warmup that fails or cannot start skips that URL."""
    if rates_for(config.ramping).is_empty():
        msg = "No rates to test. Check your start/max rate configuration."
        raise EmptyRateSequenceError(msg)

    runs: list[RampRun] = []
    for url in config.urls:
        try:
            run = await run_ramp(
                config,
                url,
                binary=binary,
                grace_sec=grace_sec,
                reporter=reporter,
                sleep=sleep,
            )
        except (WarmupError, SpawnError) as exc:
            # run_ramp records a step SpawnError on the run, so this one is from warmup.
            logger.warning("Warmup failed for %s: %s", url, exc)
            if reporter:
                reporter.url_skipped(url, exc)
            continue
        if storage is not None:
            storage.save_run(config, run)
        runs.append(run)
    return runs
