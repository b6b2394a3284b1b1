from __future__ import annotations

from rampbench.patterns.base import RampPattern, RateSchedule
from rampbench.patterns.exponential import ExponentialRamp
from rampbench.patterns.factory import rates_for
from rampbench.patterns.linear import LinearRamp

__all__ = ["ExponentialRamp", "LinearRamp", "RampPattern", "RateSchedule", "rates_for"]
