from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, ContextManager, Optional, Sequence

from ..audit.service import AuditTrail
from ..common.datetime_utils import utc_now
from ..common.validators import FieldErrors, optional_str, parse_date, parse_int, require_enum
from ..core.actor import Actor
from ..core.enums import Role, TimesheetStatus
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..core.permissions import Action, can, require
from ..timeclock.model import CLOSED_STATUSES
from ..timeclock.repository import TimeEntryRepository
from ..users.repository import UserRepository
from .calculator.base import OvertimeCalculator
from .calculator.threshold_calculator import ThresholdOvertimeCalculator
from .export import timesheets_to_csv
from .model import REGENERABLE, TIMESHEET_TRANSITIONS, Timesheet
from .repository import TimesheetRepository

logger = logging.getLogger(__name__)


def check_timesheet_transition(current: TimesheetStatus, target: TimesheetStatus) -> None:
    if target not in TIMESHEET_TRANSITIONS[current]:
        raise ConflictError(f"Invalid timesheet status transition: {current.value} -> {target.value}")


class TimesheetService:
    """Use cases: aggregate time entries into timesheets and run the approval flow."""

    def __init__(
        self,
        timesheets: TimesheetRepository,
        entries: TimeEntryRepository,
        users: UserRepository,
        audit: AuditTrail,
        transaction: Callable[[], ContextManager],
        *,
        calculator: Optional[OvertimeCalculator] = None,
        clock: Callable = utc_now,
    ):
        self._timesheets = timesheets
        self._entries = entries
        self._users = users
        self._audit = audit
        self._tx = transaction
        self._calculator = calculator or ThresholdOvertimeCalculator()
        self._clock = clock

    def _get(self, timesheet_id: int, *, for_update: bool = False) -> Timesheet:
        ts = self._timesheets.get_by_id(timesheet_id, for_update=for_update)
        if not ts:
            raise NotFoundError(f"Timesheet {timesheet_id} not found")
        return ts

    def get_timesheet(self, actor: Actor, timesheet_id: int) -> Timesheet:
        ts = self._get(timesheet_id)
        if ts.user_id != actor.user_id:
            require(actor.role, Action.TIMESHEETS_VIEW_ALL)
        return ts

    def list_timesheets(self, actor: Actor, *, user_id: Any = None, status: Optional[str] = None) -> Sequence[Timesheet]:
        uid = parse_int(user_id, "userId", min_value=1) if user_id is not None else None
        wanted = require_enum(status, TimesheetStatus, "status") if status else None
        if not can(actor.role, Action.TIMESHEETS_VIEW_ALL):
            if uid is not None and uid != actor.user_id:
                raise AuthorizationError("You can only view your own timesheets")
            uid = actor.user_id
        return self._timesheets.list(user_id=uid, status=wanted)

    def generate(self, actor: Actor, user_id: Any, period_start: Any, period_end: Any) -> Timesheet:
        """Aggregate closed entries with clockIn in [periodStart, periodEnd).

        Re-running for the same period rewrites a pending or rejected timesheet
        (back to pending); submitted, approved and exported ones are left alone.
        """

        errors = FieldErrors()
        uid = errors.check(parse_int, user_id, "userId", min_value=1)
        start = errors.check(parse_date, period_start, "periodStart")
        end = errors.check(parse_date, period_end, "periodEnd")
        if start and end and start >= end:
            errors.add("periodEnd", "must be after periodStart")
        errors.raise_if_any()

        if uid != actor.user_id:
            require(actor.role, Action.TIMESHEETS_GENERATE)
        if not self._users.get_by_id(uid):
            raise NotFoundError(f"User {uid} not found")

        with self._tx():
            existing = self._timesheets.get_for_period(uid, start, end, for_update=True)
            if existing and existing.status not in REGENERABLE:
                raise ConflictError(
                    f"Timesheet {existing.id} is {existing.status.value}; it can no longer be recomputed"
                )

            entries = self._entries.list(
                user_id=uid,
                clock_in_from=_day_start(start),
                clock_in_before=_day_start(end),
                statuses=CLOSED_STATUSES,
            )
            hours = self._calculator.calculate(entries)
            totals = {
                "total_hours": hours.total_hours,
                "regular_hours": hours.regular_hours,
                "overtime_hours": hours.overtime_hours,
            }

            if existing:
                timesheet_id = existing.id
                self._timesheets.update(
                    timesheet_id,
                    {**totals, "status": TimesheetStatus.PENDING, "approved_by": None, "approved_at": None},
                )
                action = "timesheet_regenerated"
            else:
                timesheet_id = self._timesheets.create(
                    Timesheet(
                        id=0,
                        user_id=uid,
                        period_start=start,
                        period_end=end,
                        status=TimesheetStatus.PENDING,
                        created_at=self._clock(),
                        **totals,
                    )
                )
                action = "timesheet_generated"
            self._audit.record(
                action=action,
                resource_type="timesheet",
                resource_id=timesheet_id,
                actor=actor,
                details={"entries": len(entries), **{k: str(v) for k, v in totals.items()}},
            )
        logger.info(
            "Timesheet %s for user %s %s..%s: %s regular / %s overtime",
            timesheet_id,
            uid,
            start,
            end,
            totals["regular_hours"],
            totals["overtime_hours"],
        )
        return self._get(timesheet_id)

    def _move(
        self,
        actor: Actor,
        timesheet_id: int,
        target: TimesheetStatus,
        *,
        notes: Any = None,
        approve_fields: bool = False,
    ) -> Timesheet:
        note = optional_str(notes, "notes")
        with self._tx():
            ts = self._get(timesheet_id, for_update=True)
            check_timesheet_transition(ts.status, target)
            now = self._clock()
            if not self._timesheets.set_status(
                timesheet_id,
                target,
                expected=ts.status,
                approved_by=actor.user_id if approve_fields else None,
                approved_at=now if approve_fields else None,
                notes=note,
            ):
                raise ConflictError("Timesheet changed concurrently; retry")
            self._audit.record(
                action=f"timesheet_{target.value}",
                resource_type="timesheet",
                resource_id=timesheet_id,
                actor=actor,
                details={"from": ts.status.value, "to": target.value},
            )
        logger.info("Timesheet %s %s -> %s by %s", timesheet_id, ts.status.value, target.value, actor.user_id)
        return self._get(timesheet_id)

    def submit(self, actor: Actor, timesheet_id: int, notes: Any = None) -> Timesheet:
        ts = self._get(timesheet_id)
        if ts.user_id != actor.user_id:
            require(actor.role, Action.TIMESHEETS_GENERATE)
        return self._move(actor, timesheet_id, TimesheetStatus.SUBMITTED, notes=notes)

    def approve(self, actor: Actor, timesheet_id: int, notes: Any = None) -> Timesheet:
        require(actor.role, Action.TIMESHEETS_APPROVE)
        self._check_not_own(actor, timesheet_id)
        return self._move(actor, timesheet_id, TimesheetStatus.APPROVED, notes=notes, approve_fields=True)

    def reject(self, actor: Actor, timesheet_id: int, notes: Any = None) -> Timesheet:
        require(actor.role, Action.TIMESHEETS_APPROVE)
        self._check_not_own(actor, timesheet_id)
        return self._move(actor, timesheet_id, TimesheetStatus.REJECTED, notes=notes)

    def _check_not_own(self, actor: Actor, timesheet_id: int) -> None:
        if self._get(timesheet_id).user_id == actor.user_id and actor.role != Role.OWNER:
            raise AuthorizationError("You cannot approve or reject your own timesheet")

    def export(self, actor: Actor, timesheet_ids: Any = None) -> tuple[str, Sequence[Timesheet]]:
        """Mark approved timesheets exported and return them as CSV.

        With no ids every approved timesheet is exported; an empty list exports
        nothing. All-or-nothing: any listed timesheet that is not approved fails
        the whole export.
        """

        require(actor.role, Action.TIMESHEETS_EXPORT)
        if timesheet_ids is not None and not isinstance(timesheet_ids, list):
            raise ValidationError("timesheetIds must be a list", {"timesheetIds": "must be a list"})

        with self._tx():
            if timesheet_ids is not None:
                ids = sorted({parse_int(i, "timesheetIds", min_value=1) for i in timesheet_ids})
                selected = [self._get(i, for_update=True) for i in ids]
            else:
                selected = [
                    self._get(ts.id, for_update=True)
                    for ts in self._timesheets.list(status=TimesheetStatus.APPROVED)
                ]
            for ts in selected:
                check_timesheet_transition(ts.status, TimesheetStatus.EXPORTED)
            for ts in selected:
                if not self._timesheets.set_status(ts.id, TimesheetStatus.EXPORTED, expected=TimesheetStatus.APPROVED):
                    raise ConflictError("Timesheet changed concurrently; retry")
            if selected:
                self._audit.record(
                    action="timesheets_exported",
                    resource_type="timesheet",
                    actor=actor,
                    details={"timesheetIds": [ts.id for ts in selected]},
                )
        users = {uid: self._users.get_by_id(uid) for uid in {ts.user_id for ts in selected}}
        logger.info("User %s exported %s timesheet(s)", actor.user_id, len(selected))
        return timesheets_to_csv(selected, users), [self._get(ts.id) for ts in selected]


def _day_start(day: date) -> datetime:
    return datetime.combine(day, datetime.min.time())
