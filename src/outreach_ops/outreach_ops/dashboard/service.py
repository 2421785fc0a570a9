from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.actor import Actor
from ..core.enums import DocumentStatus, ShiftStatus, TimesheetStatus
from ..core.permissions import Action, can
from ..documents.service import DocumentService
from ..payroll.service import TimesheetService
from ..shifts.assignment_service import AssignmentService
from ..shifts.service import ShiftService
from ..timeclock.service import TimeClockService


@dataclass(frozen=True)
class DashboardCounts:
    open_shifts: int
    pending_assignments: int
    clocked_in: bool
    # None when the role may not see the figure
    submitted_timesheets: Optional[int] = None
    expiring_documents: Optional[int] = None
    expired_documents: Optional[int] = None


class DashboardService:
    """Counts shown on the landing page, computed on every request."""

    def __init__(
        self,
        shifts: ShiftService,
        assignments: AssignmentService,
        time_clock: TimeClockService,
        timesheets: TimesheetService,
        documents: DocumentService,
    ):
        self._shifts = shifts
        self._assignments = assignments
        self._time_clock = time_clock
        self._timesheets = timesheets
        self._documents = documents

    def counts(self, actor: Actor) -> DashboardCounts:
        submitted = None
        if can(actor.role, Action.TIMESHEETS_APPROVE):
            submitted = len(
                self._timesheets.list_timesheets(actor, status=TimesheetStatus.SUBMITTED.value)
            )

        expiring = expired = None
        if can(actor.role, Action.DOCUMENTS_VIEW_ALL):
            documents = self._documents.list_documents(actor)
            expiring = sum(1 for d in documents if d.effective_status == DocumentStatus.EXPIRING)
            expired = sum(1 for d in documents if d.effective_status == DocumentStatus.EXPIRED)

        return DashboardCounts(
            open_shifts=len(self._shifts.list_shifts(status=ShiftStatus.OPEN.value)),
            pending_assignments=len(self._assignments.upcoming_for_user(actor.user_id)),
            clocked_in=self._time_clock.active_entry(actor) is not None,
            submitted_timesheets=submitted,
            expiring_documents=expiring,
            expired_documents=expired,
        )
