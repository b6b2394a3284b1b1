from __future__ import annotations

from dataclasses import dataclass

from rampbench.patterns.base import RateSchedule


@dataclass(frozen=True, slots=True)
class ExponentialRamp:
    start_rate: int
    max_rate: int

    def schedule(self) -> RateSchedule:
        rates: list[int] = []
        current = self.start_rate
        while current <= self.max_rate:
            rates.append(current)
            doubled = current * 2
            if doubled <= current:
                # a non-positive start never grows
                break
            current = doubled
        return RateSchedule(rates)
