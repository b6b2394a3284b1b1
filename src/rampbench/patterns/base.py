from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class RampPattern(Protocol):
    def schedule(self) -> RateSchedule:
        ...


@dataclass(frozen=True, slots=True)
class RateSchedule:
    rates: list[int]

    def steps(self) -> int:
        return len(self.rates)

    def is_empty(self) -> bool:
        return not self.rates
