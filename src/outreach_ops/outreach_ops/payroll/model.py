from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import TimesheetStatus


@dataclass(frozen=True)
class Timesheet:
    """Aggregated hours of one user over the pay period [period_start, period_end)."""

    id: int
    user_id: int
    period_start: date
    period_end: date
    total_hours: Decimal
    regular_hours: Decimal
    overtime_hours: Decimal
    status: TimesheetStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


TIMESHEET_TRANSITIONS: dict[TimesheetStatus, frozenset[TimesheetStatus]] = {
    TimesheetStatus.PENDING: frozenset({TimesheetStatus.SUBMITTED}),
    TimesheetStatus.SUBMITTED: frozenset({TimesheetStatus.APPROVED, TimesheetStatus.REJECTED}),
    TimesheetStatus.APPROVED: frozenset({TimesheetStatus.EXPORTED}),
    TimesheetStatus.REJECTED: frozenset(),
    TimesheetStatus.EXPORTED: frozenset(),
}

# Statuses a re-aggregation may overwrite (back to pending).
REGENERABLE = frozenset({TimesheetStatus.PENDING, TimesheetStatus.REJECTED})
