from __future__ import annotations

import stat
import sys
import textwrap
from pathlib import Path
from typing import Callable

import pytest

from rampbench.config import BenchmarkConfig, RampingConfig, ThresholdConfig

OHA_OUTPUT = """\
Summary:
  Success rate:\t92.50%
  Total:\t3005.1945 ms
  Slowest:\t776.2771 ms
  Fastest:\t142.7181 ms
  Average:\t120.5 ms
  Requests/sec:\t99.8270

  Total data:\t1.23 MiB
  Size/request:\t12.34 KiB
  Size/sec:\t408.21 KiB

Response time distribution:
  10.00% in 57.9695 ms
  25.00% in 72.4477 ms
  50.00% in 80.0ms
  75.00% in 112.3140 ms
  90.00% in 150.0ms
  95.00% in 201.6556 ms
  99.00% in 300.0ms

Status code distribution:
  [200] 90 responses
  [500] 10 responses
"""

FakeBinary = Callable[[str], Path]


@pytest.fixture
def oha_output() -> str:
    return OHA_OUTPUT


@pytest.fixture
def fake_binary(tmp_path: Path) -> FakeBinary:
    """Write an executable Python script standing in for the load generator."""

    def make(body: str) -> Path:
        path = tmp_path / f"fake-oha-{len(list(tmp_path.iterdir()))}"
        path.write_text(f"#!{sys.executable}\nimport sys\nimport time\n" + textwrap.dedent(body))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return make


@pytest.fixture
def config() -> BenchmarkConfig:
    return BenchmarkConfig(
        urls=("https://example.test/health",),
        ramping=RampingConfig(start_rate=50, max_rate=150, step=50, duration_seconds=1, connections=10),
        thresholds=ThresholdConfig(max_error_rate=5.0, max_p99_ms=1000),
    )
