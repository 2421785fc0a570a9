from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import TimeEntryStatus

CLOSED_STATUSES = frozenset({TimeEntryStatus.COMPLETED, TimeEntryStatus.AUTO_CLOCKED_OUT})


@dataclass(frozen=True)
class TimeEntry:
    """One clock-in/clock-out span. Hours are derived later by timesheet aggregation."""

    id: int
    user_id: int
    clock_in: datetime
    hourly_rate: Decimal
    status: TimeEntryStatus
    shift_id: Optional[int] = None
    clock_out: Optional[datetime] = None
    break_minutes: int = 0
    job_name: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    locked: bool = False
    relieving_nurse_signature: Optional[str] = None
    shift_note_attachments: list[str] = field(default_factory=list)
    employee_notes: Optional[str] = None
    manager_notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES and self.clock_out is not None

    def worked_seconds(self) -> int:
        """clockOut - clockIn - break, in whole seconds, never negative."""

        if self.clock_out is None:
            return 0
        elapsed = int((self.clock_out - self.clock_in).total_seconds())
        return max(0, elapsed - int(self.break_minutes) * 60)
