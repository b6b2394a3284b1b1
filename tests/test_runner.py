from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest

from rampbench.analysis import StepStatus
from rampbench.config import BenchmarkConfig, RampingConfig
from rampbench.errors import EmptyRateSequenceError, SpawnError, WarmupError
from rampbench.loadgen import runner
from rampbench.loadgen.runner import RampRun, run_ramp, run_suite
from rampbench.metrics import StepResult
from rampbench.storage import Storage

URL = "https://example.test/health"


def _ok(rate: int) -> StepResult:
    return StepResult(
        target_rate=rate,
        actual_rate=float(rate),
        avg_latency_ms=10.0,
        p50_latency_ms=8.0,
        p90_latency_ms=20.0,
        p99_latency_ms=40.0,
        max_latency_ms=60.0,
        total_requests=rate,
    )


class RecordingReporter:
    def __init__(self) -> None:
        self.events: list[tuple[Any, ...]] = []

    def run_started(self, url: str, rates: list[int]) -> None:
        self.events.append(("run_started", url, tuple(rates)))

    def step_started(self, index: int, total: int, rate: int, duration_sec: int) -> None:
        self.events.append(("step_started", index, total, rate))

    def step_tick(self, elapsed_sec: int) -> None:
        self.events.append(("tick", elapsed_sec))

    def step_finished(self, result: StepResult, classification: Any) -> None:
        self.events.append(("step_finished", result.target_rate, classification.status))

    def step_aborted(self, rate: int, error: Exception) -> None:
        self.events.append(("step_aborted", rate))

    def cooling_down(self, seconds: int) -> None:
        self.events.append(("cooling_down", seconds))

    def run_finished(self, run: RampRun) -> None:
        self.events.append(("run_finished", run.url))

    def url_skipped(self, url: str, error: Exception) -> None:
        self.events.append(("url_skipped", url))


def _fake_step(results: dict[int, StepResult | Exception], calls: list[int]):
    async def fake_run_step(config: BenchmarkConfig, url: str, rate: int, **kwargs: Any) -> StepResult:
        calls.append(rate)
        outcome = results.get(rate, _ok(rate))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return fake_run_step


async def _no_sleep(seconds: float) -> None:
    return None


def test_stops_at_first_break(config: BenchmarkConfig, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[int] = []
    broken = replace(_ok(100), error_rate=50.0, error_status_codes=((503, 50),))
    monkeypatch.setattr(runner, "run_step", _fake_step({100: broken}, calls))

    run = asyncio.run(run_ramp(config, URL))

    assert calls == [50, 100]
    assert [c.status for c in run.classifications] == [StepStatus.OK, StepStatus.BREAK]
    assert run.summary.breaking_point_rate == 100
    assert run.summary.last_stable_rate == 50
    assert run.summary.recommended_rate == 40
    assert run.error is None


def test_gone_step_does_not_stop_the_run(config: BenchmarkConfig, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[int] = []
    gone = StepResult(target_rate=100, actual_rate=80.0)
    monkeypatch.setattr(runner, "run_step", _fake_step({100: gone}, calls))

    run = asyncio.run(run_ramp(config, URL))

    assert calls == [50, 100, 150]
    assert run.classifications[1].status is StepStatus.GONE
    assert run.summary.breaking_point_rate == 100


def test_no_break_runs_every_rate(config: BenchmarkConfig, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[int] = []
    monkeypatch.setattr(runner, "run_step", _fake_step({}, calls))
    reporter = RecordingReporter()

    run = asyncio.run(run_ramp(config, URL, reporter=reporter))

    assert calls == [50, 100, 150]
    assert run.summary.breaking_point_rate is None
    assert run.summary.last_stable_rate == 150
    assert run.summary.total_requests == 300
    assert run.summary.total_duration_seconds == 3
    assert reporter.events[0] == ("run_started", URL, (50, 100, 150))
    assert reporter.events[-1] == ("run_finished", URL)
    assert ("step_started", 2, 3, 150) in reporter.events


def test_cooldown_between_steps_only(config: BenchmarkConfig, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(runner, "run_step", _fake_step({}, []))
    slept: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        slept.append(seconds)

    reporter = RecordingReporter()
    asyncio.run(run_ramp(replace(config, cooldown_seconds=7), URL, reporter=reporter, sleep=fake_sleep))

    assert slept == [7, 7]
    assert reporter.events.count(("cooling_down", 7)) == 2


def test_no_cooldown_after_break(config: BenchmarkConfig, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(runner, "run_step", _fake_step({50: StepResult.hung_at(50)}, []))
    slept: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        slept.append(seconds)

    run = asyncio.run(run_ramp(replace(config, cooldown_seconds=7), URL, sleep=fake_sleep))

    assert slept == []
    assert run.classifications[0].status is StepStatus.HUNG
    assert run.summary.last_stable_rate is None


def test_spawn_failure_keeps_partial_results(config: BenchmarkConfig, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[int] = []
    monkeypatch.setattr(runner, "run_step", _fake_step({100: SpawnError("Failed to spawn oha")}, calls))
    reporter = RecordingReporter()

    run = asyncio.run(run_ramp(config, URL, reporter=reporter))

    assert calls == [50, 100]
    assert len(run.results) == 1
    assert run.error == "Failed to spawn oha"
    assert run.summary.last_stable_rate == 50
    assert ("step_aborted", 100) in reporter.events


def test_empty_rate_sequence_is_rejected(config: BenchmarkConfig, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[int] = []
    monkeypatch.setattr(runner, "run_step", _fake_step({}, calls))
    cfg = replace(config, ramping=RampingConfig(start_rate=500, max_rate=100))

    with pytest.raises(EmptyRateSequenceError):
        asyncio.run(run_ramp(cfg, URL))
    with pytest.raises(EmptyRateSequenceError):
        asyncio.run(run_suite(cfg))
    assert calls == []


def test_suite_skips_url_when_warmup_fails(
    config: BenchmarkConfig,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    calls: list[int] = []
    monkeypatch.setattr(runner, "run_step", _fake_step({}, calls))

    async def fake_warmup(config: BenchmarkConfig, url: str, **kwargs: Any) -> None:
        if "bad" in url:
            raise WarmupError("Warmup failed with exit code 1")

    monkeypatch.setattr(runner, "run_warmup", fake_warmup)
    cfg = replace(config, urls=("https://bad.test/", URL), warmup_seconds=5)
    storage = Storage(tmp_path / "runs.duckdb")
    reporter = RecordingReporter()

    runs = asyncio.run(run_suite(cfg, reporter=reporter, storage=storage, sleep=_no_sleep))

    assert [run.url for run in runs] == [URL]
    assert ("url_skipped", "https://bad.test/") in reporter.events
    assert calls == [50, 100, 150]
    stored = storage.list_runs()
    assert stored["run_id"].tolist() == [runs[0].run_id]


def test_frame_matches_results(config: BenchmarkConfig, monkeypatch: pytest.MonkeyPatch) -> None:
    coded = replace(_ok(150), error_rate=1.0, error_status_codes=((500, 1),))
    monkeypatch.setattr(runner, "run_step", _fake_step({150: coded}, []))

    frame = asyncio.run(run_ramp(config, URL)).to_frame()

    assert frame["step"].tolist() == [0, 1, 2]
    assert frame["target_rate"].tolist() == [50, 100, 150]
    assert frame["status"].tolist() == ["OK", "OK", "OK"]
    assert frame["error_codes_json"].iloc[-1] == "[[500, 1]]"


def test_suite_keeps_finished_runs_when_warmup_cannot_start(
    config: BenchmarkConfig,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(runner, "run_step", _fake_step({}, []))

    async def fake_warmup(config: BenchmarkConfig, url: str, **kwargs: Any) -> None:
        if url == "https://second.test/":
            raise SpawnError("Failed to spawn oha: [Errno 11] Resource temporarily unavailable")

    monkeypatch.setattr(runner, "run_warmup", fake_warmup)
    cfg = replace(
        config,
        urls=("https://first.test/", "https://second.test/", "https://third.test/"),
        warmup_seconds=5,
    )
    reporter = RecordingReporter()

    runs = asyncio.run(run_suite(cfg, reporter=reporter, sleep=_no_sleep))

    assert [run.url for run in runs] == ["https://first.test/", "https://third.test/"]
    assert ("url_skipped", "https://second.test/") in reporter.events
