from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Optional, Sequence

from ...core.constants import OVERTIME_DAILY_HOURS, OVERTIME_WEEKLY_HOURS, WORKWEEK_START_DAY
from ...timeclock.model import TimeEntry
from .base import HoursBreakdown, OvertimeCalculator


class ThresholdOvertimeCalculator(OvertimeCalculator):
    """Daily threshold first (optional), then weekly threshold on the remaining regular time.

    Each entry counts on the calendar day of its clock-in. Work weeks start on
    `week_start_day` (0 = Monday). Arithmetic is in whole seconds.
    """

    def __init__(
        self,
        *,
        weekly_hours: Optional[float] = OVERTIME_WEEKLY_HOURS,
        daily_hours: Optional[float] = OVERTIME_DAILY_HOURS,
        week_start_day: int = WORKWEEK_START_DAY,
    ):
        if not 0 <= int(week_start_day) <= 6:
            raise ValueError("week_start_day must be 0 (Monday) .. 6 (Sunday)")
        self._weekly_limit = None if weekly_hours is None else int(round(float(weekly_hours) * 3600))
        self._daily_limit = None if daily_hours is None else int(round(float(daily_hours) * 3600))
        self._week_start = int(week_start_day)

    def week_of(self, day: date) -> date:
        return day - timedelta(days=(day.weekday() - self._week_start) % 7)

    def calculate(self, entries: Sequence[TimeEntry]) -> HoursBreakdown:
        per_day: dict[date, int] = defaultdict(int)
        for entry in entries:
            per_day[entry.clock_in.date()] += entry.worked_seconds()

        overtime = 0
        regular_per_week: dict[date, int] = defaultdict(int)
        for day in sorted(per_day):
            seconds = per_day[day]
            if self._daily_limit is not None and seconds > self._daily_limit:
                overtime += seconds - self._daily_limit
                seconds = self._daily_limit
            regular_per_week[self.week_of(day)] += seconds

        regular = 0
        for week_seconds in regular_per_week.values():
            if self._weekly_limit is not None and week_seconds > self._weekly_limit:
                overtime += week_seconds - self._weekly_limit
                week_seconds = self._weekly_limit
            regular += week_seconds

        return HoursBreakdown(regular_seconds=regular, overtime_seconds=overtime)
