from __future__ import annotations

from dataclasses import dataclass

from rampbench.patterns.base import RateSchedule


@dataclass(frozen=True, slots=True)
class LinearRamp:
    start_rate: int
    max_rate: int
    step: int

    def schedule(self) -> RateSchedule:
        if self.start_rate > self.max_rate:
            return RateSchedule([])
        if self.step <= 0:
            return RateSchedule([self.start_rate])
        return RateSchedule(list(range(self.start_rate, self.max_rate + 1, self.step)))
