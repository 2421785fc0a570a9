from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..core.enums import TimesheetStatus
from .model import Timesheet


class TimesheetRepository(Protocol):
    def get_by_id(self, timesheet_id: int, *, for_update: bool = False) -> Optional[Timesheet]:
        raise NotImplementedError

    def get_for_period(
        self, user_id: int, period_start: date, period_end: date, *, for_update: bool = False
    ) -> Optional[Timesheet]:
        raise NotImplementedError

    def list(
        self,
        *,
        user_id: Optional[int] = None,
        status: Optional[TimesheetStatus] = None,
    ) -> Sequence[Timesheet]:
        raise NotImplementedError

    def create(self, timesheet: Timesheet) -> int:
        """Insert; raises ConflictError if the user already has a timesheet for the period."""
        raise NotImplementedError

    def update(self, timesheet_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def set_status(
        self,
        timesheet_id: int,
        status: TimesheetStatus,
        *,
        expected: TimesheetStatus,
        approved_by: Optional[int] = None,
        approved_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> bool:
        """Guarded single-row status write (approver fields written together)."""
        raise NotImplementedError
