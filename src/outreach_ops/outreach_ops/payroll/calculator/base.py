from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from ...timeclock.model import TimeEntry

HOURS_QUANTUM = Decimal("0.01")


def seconds_to_hours(seconds: int) -> Decimal:
    return (Decimal(int(seconds)) / Decimal(3600)).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class HoursBreakdown:
    regular_seconds: int
    overtime_seconds: int

    @property
    def regular_hours(self) -> Decimal:
        return seconds_to_hours(self.regular_seconds)

    @property
    def overtime_hours(self) -> Decimal:
        return seconds_to_hours(self.overtime_seconds)

    @property
    def total_hours(self) -> Decimal:
        # Sum of the rounded buckets so total == regular + overtime exactly.
        return self.regular_hours + self.overtime_hours


class OvertimeCalculator(ABC):
    """Calculator interface (Strategy Pattern for payroll)."""

    @abstractmethod
    def calculate(self, entries: Sequence[TimeEntry]) -> HoursBreakdown:
        raise NotImplementedError
