from __future__ import annotations

import asyncio
import os
from dataclasses import replace
from pathlib import Path
from typing import Callable

import pytest

from rampbench.config import BenchmarkConfig
from rampbench.errors import LoadGeneratorNotFoundError, SpawnError, WarmupError
from rampbench.loadgen.oha import check_installed, run_step, run_warmup
from rampbench.metrics import StepResult

FakeBinary = Callable[[str], Path]

URL = "https://example.test/health"


def test_step_output_is_parsed(config: BenchmarkConfig, fake_binary: FakeBinary, oha_output: str) -> None:
    binary = fake_binary(f"sys.stdout.write({oha_output!r})\n")
    result = asyncio.run(run_step(config, URL, 100, binary=str(binary), grace_sec=10))
    assert not result.hung
    assert result.target_rate == 100
    assert result.total_requests == 100
    assert result.error_status_codes == ((500, 10),)
    assert result.p99_latency_ms == pytest.approx(300.0)


def test_stderr_is_parsed_too(config: BenchmarkConfig, fake_binary: FakeBinary) -> None:
    binary = fake_binary(
        """
        sys.stdout.write("Requests/sec:\\t40.0\\n")
        sys.stderr.write("Error distribution:\\n  [7] connection refused\\n")
        """
    )
    result = asyncio.run(run_step(config, URL, 50, binary=str(binary), grace_sec=10))
    assert result.actual_rate == pytest.approx(40.0)
    assert result.errors == 7
    assert result.error_rate == pytest.approx(100.0)


def _sleeper(fake_binary: FakeBinary, pid_file: Path, output: str = "") -> Path:
    """A generator that prints ``output``, records its pid and then never exits."""
    return fake_binary(
        f"""
        import os
        sys.stdout.write({output!r})
        sys.stdout.flush()
        with open({str(pid_file)!r} + ".tmp", "w") as fh:
            fh.write(str(os.getpid()))
        os.replace({str(pid_file)!r} + ".tmp", {str(pid_file)!r})
        time.sleep(60)
        """
    )


def _assert_reaped(pid_file: Path) -> None:
    with pytest.raises(ProcessLookupError):
        os.kill(int(pid_file.read_text()), 0)


def test_hung_process_is_reaped_and_output_ignored(
    config: BenchmarkConfig,
    fake_binary: FakeBinary,
    oha_output: str,
    tmp_path: Path,
) -> None:
    pid_file = tmp_path / "child.pid"
    binary = _sleeper(fake_binary, pid_file, oha_output)
    result = asyncio.run(run_step(config, URL, 150, binary=str(binary), grace_sec=0.5))
    assert result == StepResult.hung_at(150)
    _assert_reaped(pid_file)


def test_cancelled_step_reaps_child(config: BenchmarkConfig, fake_binary: FakeBinary, tmp_path: Path) -> None:
    pid_file = tmp_path / "child.pid"
    binary = _sleeper(fake_binary, pid_file)

    async def cancel_while_running() -> None:
        task = asyncio.create_task(run_step(config, URL, 50, binary=str(binary), grace_sec=30))
        while not pid_file.exists() and not task.done():
            await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(cancel_while_running())
    _assert_reaped(pid_file)


def test_failing_progress_callback_keeps_the_result(
    config: BenchmarkConfig,
    fake_binary: FakeBinary,
    oha_output: str,
) -> None:
    binary = fake_binary(f"time.sleep(1.5)\nsys.stdout.write({oha_output!r})\n")
    ticks: list[int] = []

    def on_tick(elapsed_sec: int) -> None:
        ticks.append(elapsed_sec)
        raise RuntimeError("progress display broke")

    result = asyncio.run(run_step(config, URL, 100, binary=str(binary), grace_sec=10, on_tick=on_tick))
    assert ticks
    assert not result.hung
    assert result.total_requests == 100


def test_missing_binary_is_a_spawn_error(config: BenchmarkConfig, tmp_path: Path) -> None:
    with pytest.raises(SpawnError):
        asyncio.run(run_step(config, URL, 50, binary=str(tmp_path / "missing-oha")))


def test_warmup_is_skipped_when_disabled(config: BenchmarkConfig, tmp_path: Path) -> None:
    # Would fail to spawn if it ran.
    asyncio.run(run_warmup(config, URL, binary=str(tmp_path / "missing-oha")))


def test_warmup_failure_raises(config: BenchmarkConfig, fake_binary: FakeBinary) -> None:
    binary = fake_binary("sys.exit(3)\n")
    cfg = replace(config, warmup_seconds=1)
    with pytest.raises(WarmupError, match="exit code 3"):
        asyncio.run(run_warmup(cfg, URL, binary=str(binary), grace_sec=10))


def test_warmup_timeout_raises(config: BenchmarkConfig, fake_binary: FakeBinary) -> None:
    binary = fake_binary("time.sleep(60)\n")
    cfg = replace(config, warmup_seconds=1)
    with pytest.raises(WarmupError, match="did not finish"):
        asyncio.run(run_warmup(cfg, URL, binary=str(binary), grace_sec=0.5))


def test_warmup_success(config: BenchmarkConfig, fake_binary: FakeBinary) -> None:
    binary = fake_binary("sys.exit(0)\n")
    asyncio.run(run_warmup(replace(config, warmup_seconds=1), URL, binary=str(binary), grace_sec=10))


def test_check_installed(fake_binary: FakeBinary, tmp_path: Path) -> None:
    check_installed(str(fake_binary('print("oha 1.4.0")\n')))
    with pytest.raises(LoadGeneratorNotFoundError, match="cargo install oha"):
        check_installed(str(tmp_path / "missing-oha"))
    with pytest.raises(LoadGeneratorNotFoundError):
        check_installed(str(fake_binary("sys.exit(1)\n")))
