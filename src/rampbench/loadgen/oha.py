from __future__ import annotations

import asyncio
import contextlib
import logging
import subprocess
import time
from typing import Callable

from rampbench.config import BenchmarkConfig, render_auth_header
from rampbench.errors import LoadGeneratorNotFoundError, SpawnError, WarmupError
from rampbench.loadgen.parser import OHA_FORMAT, OutputFormat, parse_output
from rampbench.metrics import StepResult

logger = logging.getLogger(__name__)

DEFAULT_BINARY = "oha"
# Extra time beyond the step duration before the process is considered hung.
HANG_GRACE_SEC = 30.0

TickCallback = Callable[[int], None]

INSTALL_HINT = """oha is not installed.

oha is an HTTP load generator with rate limiting support.

To install oha:

  # Arch Linux
  sudo pacman -S oha

  # Using cargo
  cargo install oha

  # macOS with Homebrew
  brew install oha

For more info, see: https://github.com/hatoo/oha"""


def _identity_headers(config: BenchmarkConfig) -> list[str]:
    args = ["-H", f"User-Agent: {config.user_agent}"]
    auth_header = render_auth_header(config.auth)
    if auth_header:
        args += ["-H", auth_header]
    return args


def build_command(
    config: BenchmarkConfig,
    url: str,
    rate: int,
    binary: str = DEFAULT_BINARY,
) -> list[str]:
    ramping = config.ramping
    cmd = [
        binary,
        "-c",
        str(ramping.connections),
        "-z",
        f"{ramping.duration_seconds}s",
        "-q",
        str(rate),
        "--latency-correction",
        "-w",
        "--no-tui",
        "-m",
        config.method.value.upper(),
    ]
    if config.body is not None:
        cmd += ["-d", config.body]
        if not any(h.lower().startswith("content-type:") for h in config.headers):
            cmd += ["-H", "Content-Type: application/json"]
    cmd += _identity_headers(config)
    for header in config.headers:
        cmd += ["-H", header]
    cmd.append(url)
    return cmd


def build_warmup_command(
    config: BenchmarkConfig,
    url: str,
    binary: str = DEFAULT_BINARY,
) -> list[str]:
    cmd = [
        binary,
        "-c",
        str(config.ramping.connections),
        "-z",
        f"{config.warmup_seconds}s",
        "-q",
        str(config.ramping.start_rate),
        "--no-tui",
    ]
    cmd += _identity_headers(config)
    cmd.append(url)
    return cmd


def check_installed(binary: str = DEFAULT_BINARY) -> None:
    try:
        proc = subprocess.run(
            [binary, "--version"],
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise LoadGeneratorNotFoundError(INSTALL_HINT) from exc
    if proc.returncode != 0:
        raise LoadGeneratorNotFoundError(INSTALL_HINT)
    logger.debug("Using %s", proc.stdout.strip() or binary)


async def _spawn(cmd: list[str], *, capture: bool) -> asyncio.subprocess.Process:
    stream = asyncio.subprocess.PIPE if capture else asyncio.subprocess.DEVNULL
    try:
        return await asyncio.create_subprocess_exec(*cmd, stdout=stream, stderr=stream)
    except OSError as exc:
        msg = f"Failed to spawn {cmd[0]}: {exc}"
        raise SpawnError(msg) from exc


async def _kill(proc: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    await proc.wait()


async def _tick(on_tick: TickCallback, started: float) -> None:
    while True:
        await asyncio.sleep(1.0)
        on_tick(int(time.monotonic() - started))


async def _stop_ticker(ticker: asyncio.Task[None]) -> None:
    ticker.cancel()
    try:
        await ticker
    except asyncio.CancelledError:
        pass
    except Exception:
        # Progress display only; the step result stands.
        logger.warning("Progress callback failed", exc_info=True)


async def run_step(
    config: BenchmarkConfig,
    url: str,
    rate: int,
    *,
    binary: str = DEFAULT_BINARY,
    grace_sec: float = HANG_GRACE_SEC,
    fmt: OutputFormat = OHA_FORMAT,
    on_tick: TickCallback | None = None,
) -> StepResult:
    duration = config.ramping.duration_seconds
    cmd = build_command(config, url, rate, binary)
    logger.debug("Spawning %s", " ".join(cmd))
    proc = await _spawn(cmd, capture=True)

    started = time.monotonic()
    ticker = asyncio.create_task(_tick(on_tick, started)) if on_tick else None
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=duration + grace_sec)
    except asyncio.TimeoutError:
        logger.warning(
            "%s did not exit within %.0fs at %d req/s, killing pid %d",
            binary,
            duration + grace_sec,
            rate,
            proc.pid,
        )
        await _kill(proc)
        return StepResult.hung_at(rate)
    finally:
        if ticker is not None:
            await _stop_ticker(ticker)
        # Reached with a live child only when this coroutine was cancelled.
        if proc.returncode is None:
            await _kill(proc)

    logger.debug("%s exited with %s after %.1fs", binary, proc.returncode, time.monotonic() - started)
    output = stdout.decode("utf-8", errors="replace") + "\n" + stderr.decode("utf-8", errors="replace")
    return parse_output(output, rate, duration, fmt)


async def run_warmup(
    config: BenchmarkConfig,
    url: str,
    *,
    binary: str = DEFAULT_BINARY,
    grace_sec: float = HANG_GRACE_SEC,
) -> None:
    if config.warmup_seconds <= 0:
        return
    cmd = build_warmup_command(config, url, binary)
    logger.info("Warming up %s for %ds at %d req/s", url, config.warmup_seconds, config.ramping.start_rate)
    proc = await _spawn(cmd, capture=False)
    try:
        returncode = await asyncio.wait_for(proc.wait(), timeout=config.warmup_seconds + grace_sec)
    except asyncio.TimeoutError as exc:
        await _kill(proc)
        msg = f"Warmup did not finish within {config.warmup_seconds + grace_sec:.0f}s"
        raise WarmupError(msg) from exc
    if returncode != 0:
        msg = f"Warmup failed with exit code {returncode}"
        raise WarmupError(msg)
