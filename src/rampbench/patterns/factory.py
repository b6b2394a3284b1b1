from __future__ import annotations

from rampbench.config import RampingConfig, RampingMode
from rampbench.patterns.base import RateSchedule
from rampbench.patterns.exponential import ExponentialRamp
from rampbench.patterns.linear import LinearRamp


def rates_for(ramping: RampingConfig) -> RateSchedule:
    if ramping.mode is RampingMode.LINEAR:
        return LinearRamp(ramping.start_rate, ramping.max_rate, ramping.step).schedule()
    if ramping.mode is RampingMode.EXPONENTIAL:
        return ExponentialRamp(ramping.start_rate, ramping.max_rate).schedule()
    msg = f"Unsupported ramping mode: {ramping.mode}"
    raise ValueError(msg)
