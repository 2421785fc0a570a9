from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Callable, ContextManager, Mapping, Optional, Sequence

from ..audit.service import AuditTrail
from ..common.datetime_utils import utc_now
from ..common.validators import (
    FieldErrors,
    optional_datetime,
    optional_str,
    parse_datetime,
    parse_decimal,
    parse_int,
    parse_string_list,
)
from ..core.actor import Actor
from ..core.constants import AUTO_CLOCK_OUT_HOURS
from ..core.enums import ShiftStatus, TimeEntryStatus
from ..core.exceptions import (
    AlreadyClockedInError,
    AuthorizationError,
    ConflictError,
    EntryLockedError,
    NotFoundError,
    ValidationError,
)
from ..core.permissions import Action, can, require
from ..shifts.repository import ShiftRepository
from ..users.repository import UserRepository
from .factory import ClockOutPolicyFactory
from .model import TimeEntry
from .repository import TimeEntryRepository

logger = logging.getLogger(__name__)

# Fields the entry's owner may edit; everything else needs time:edit_any.
OWNER_EDITABLE = frozenset({"employeeNotes"})


def _check_break(break_minutes: int, clock_in, clock_out) -> None:
    elapsed_minutes = (clock_out - clock_in).total_seconds() / 60
    if break_minutes >= elapsed_minutes:
        raise ValidationError(
            "Break must be shorter than the time worked",
            {"breakMinutes": "must be shorter than the elapsed time"},
        )


class TimeClockService:
    """Use cases: clock in/out, entry edits, locking and auto clock-out."""

    def __init__(
        self,
        entries: TimeEntryRepository,
        users: UserRepository,
        shifts: ShiftRepository,
        audit: AuditTrail,
        transaction: Callable[[], ContextManager],
        *,
        policy_factory: Optional[ClockOutPolicyFactory] = None,
        clock: Callable = utc_now,
        auto_clock_out_hours: float = AUTO_CLOCK_OUT_HOURS,
    ):
        self._entries = entries
        self._users = users
        self._shifts = shifts
        self._audit = audit
        self._tx = transaction
        self._factory = policy_factory or ClockOutPolicyFactory()
        self._clock = clock
        self._auto_hours = auto_clock_out_hours

    def _get(self, entry_id: int, *, for_update: bool = False) -> TimeEntry:
        entry = self._entries.get_by_id(entry_id, for_update=for_update)
        if not entry:
            raise NotFoundError(f"Time entry {entry_id} not found")
        return entry

    def _check_access(self, actor: Actor, entry: TimeEntry) -> None:
        if entry.user_id != actor.user_id and not can(actor.role, Action.TIME_VIEW_ALL):
            raise AuthorizationError("You can only access your own time entries")

    def clock_in(self, actor: Actor, data: Mapping[str, Any]) -> TimeEntry:
        errors = FieldErrors()
        shift_id = (
            errors.check(parse_int, data["shiftId"], "shiftId", min_value=1)
            if data.get("shiftId") is not None
            else None
        )
        job_name = errors.check(optional_str, data.get("jobName"), "jobName")
        location = errors.check(optional_str, data.get("location"), "location")
        notes = errors.check(optional_str, data.get("notes"), "notes")
        errors.raise_if_any()

        user = self._users.get_by_id(actor.user_id)
        if not user:
            raise NotFoundError(f"User {actor.user_id} not found")

        if shift_id is not None:
            shift = self._shifts.get_by_id(shift_id)
            if not shift:
                raise NotFoundError(f"Shift {shift_id} not found")
            if shift.status == ShiftStatus.CANCELLED:
                raise ConflictError("Cannot clock in to a cancelled shift")
            job_name = job_name or shift.job_name

        now = self._clock()
        with self._tx():
            if self._entries.get_active_for_user(actor.user_id, for_update=True):
                logger.warning("User %s tried to clock in twice", actor.user_id)
                raise AlreadyClockedInError("You are already clocked in")
            entry_id = self._entries.create(
                TimeEntry(
                    id=0,
                    user_id=actor.user_id,
                    shift_id=shift_id,
                    clock_in=now,
                    job_name=job_name,
                    hourly_rate=user.rate_for_job(job_name),
                    location=location,
                    notes=notes,
                    status=TimeEntryStatus.ACTIVE,
                    created_at=now,
                )
            )
            self._audit.record(
                action="clock_in",
                resource_type="time_entry",
                resource_id=entry_id,
                actor=actor,
                details={"shiftId": shift_id, "jobName": job_name},
            )
        logger.info("User %s clocked in (entry %s)", actor.user_id, entry_id)
        return self._get(entry_id)

    def active_entry(self, actor: Actor) -> Optional[TimeEntry]:
        return self._entries.get_active_for_user(actor.user_id)

    def clock_out(self, actor: Actor, data: Mapping[str, Any]) -> TimeEntry:
        errors = FieldErrors()
        attachments = errors.check(parse_string_list, data.get("shiftNoteAttachments"), "shiftNoteAttachments")
        break_minutes = errors.check(parse_int, data.get("breakMinutes", 0), "breakMinutes", min_value=0)
        signature = errors.check(optional_str, data.get("relievingNurseSignature"), "relievingNurseSignature")
        employee_notes = errors.check(optional_str, data.get("employeeNotes"), "employeeNotes")
        errors.raise_if_any()

        now = self._clock()
        with self._tx():
            entry = self._entries.get_active_for_user(actor.user_id, for_update=True)
            if not entry:
                raise ConflictError("Not clocked in")
            if entry.locked:
                raise EntryLockedError("Time entry is locked")
            if now <= entry.clock_in:
                raise ValidationError("Clock-out must be after clock-in", {"clockOut": "must be after clockIn"})
            _check_break(break_minutes, entry.clock_in, now)

            files = list(entry.shift_note_attachments) + attachments
            self._factory.for_job(entry.job_name).check(entry, files)

            changes: dict[str, Any] = {"break_minutes": break_minutes, "shift_note_attachments": files}
            if signature is not None:
                changes["relieving_nurse_signature"] = signature
            if employee_notes is not None:
                changes["employee_notes"] = employee_notes
            if not self._entries.close(entry.id, clock_out=now, status=TimeEntryStatus.COMPLETED, changes=changes):
                raise ConflictError("Time entry changed concurrently; retry")
            self._audit.record(
                action="clock_out",
                resource_type="time_entry",
                resource_id=entry.id,
                actor=actor,
                details={"attachments": len(files), "breakMinutes": break_minutes},
            )
        logger.info("User %s clocked out (entry %s)", actor.user_id, entry.id)
        return self._get(entry.id)

    def get_entry(self, actor: Actor, entry_id: int) -> TimeEntry:
        entry = self._get(entry_id)
        self._check_access(actor, entry)
        return entry

    def list_entries(
        self,
        actor: Actor,
        *,
        user_id: Any = None,
        clock_in_from: Any = None,
        clock_in_before: Any = None,
    ) -> Sequence[TimeEntry]:
        errors = FieldErrors()
        uid = errors.check(parse_int, user_id, "userId", min_value=1) if user_id is not None else None
        start = errors.check(optional_datetime, clock_in_from, "from")
        end = errors.check(optional_datetime, clock_in_before, "to")
        errors.raise_if_any()

        if not can(actor.role, Action.TIME_VIEW_ALL):
            if uid is not None and uid != actor.user_id:
                raise AuthorizationError("You can only view your own time entries")
            uid = actor.user_id
        return self._entries.list(user_id=uid, clock_in_from=start, clock_in_before=end)

    def update_entry(self, actor: Actor, entry_id: int, data: Mapping[str, Any]) -> TimeEntry:
        entry = self._get(entry_id)
        elevated = can(actor.role, Action.TIME_EDIT_ANY)
        if not elevated and not (entry.user_id == actor.user_id and set(data) <= OWNER_EDITABLE):
            raise AuthorizationError("You cannot edit this time entry")

        errors = FieldErrors()
        changes: dict[str, Any] = {}
        for key, attr in (
            ("employeeNotes", "employee_notes"),
            ("managerNotes", "manager_notes"),
            ("notes", "notes"),
            ("jobName", "job_name"),
            ("location", "location"),
        ):
            if key in data:
                changes[attr] = errors.check(optional_str, data[key], key)
        if "clockIn" in data:
            changes["clock_in"] = errors.check(parse_datetime, data["clockIn"], "clockIn")
        if "clockOut" in data:
            changes["clock_out"] = errors.check(parse_datetime, data["clockOut"], "clockOut")
        if "breakMinutes" in data:
            changes["break_minutes"] = errors.check(parse_int, data["breakMinutes"], "breakMinutes", min_value=0)
        errors.raise_if_any()

        with self._tx():
            entry = self._get(entry_id, for_update=True)
            if entry.locked:
                raise EntryLockedError("Time entry is locked")
            if entry.status == TimeEntryStatus.ACTIVE and "clock_out" in changes:
                raise ConflictError("Active entries are closed by clocking out")
            clock_in = changes.get("clock_in", entry.clock_in)
            clock_out = changes.get("clock_out", entry.clock_out)
            if clock_out is not None:
                if clock_out <= clock_in:
                    raise ValidationError("Clock-out must be after clock-in", {"clockOut": "must be after clockIn"})
                _check_break(changes.get("break_minutes", entry.break_minutes), clock_in, clock_out)

            self._entries.update(entry_id, changes)
            self._audit.record(
                action="time_entry_updated",
                resource_type="time_entry",
                resource_id=entry_id,
                actor=actor,
                details={"fields": sorted(data)},
            )
        return self._get(entry_id)

    def add_attachments(self, actor: Actor, entry_id: int, files: Any) -> TimeEntry:
        names = parse_string_list(files, "shiftNoteAttachments")
        if not names:
            raise ValidationError("No attachments given", {"shiftNoteAttachments": "at least one file is required"})
        with self._tx():
            entry = self._get(entry_id, for_update=True)
            if entry.user_id != actor.user_id and not can(actor.role, Action.TIME_EDIT_ANY):
                raise AuthorizationError("You cannot edit this time entry")
            if entry.locked:
                raise EntryLockedError("Time entry is locked")
            self._entries.update(entry_id, {"shift_note_attachments": list(entry.shift_note_attachments) + names})
            self._audit.record(
                action="time_entry_attachments_added",
                resource_type="time_entry",
                resource_id=entry_id,
                actor=actor,
                details={"files": names},
            )
        return self._get(entry_id)

    def lock_entries(self, actor: Actor, entry_ids: Any) -> Sequence[TimeEntry]:
        require(actor.role, Action.TIME_LOCK)
        if not isinstance(entry_ids, list) or not entry_ids:
            raise ValidationError("entryIds must be a non-empty list", {"entryIds": "must be a non-empty list"})
        ids = sorted({parse_int(i, "entryIds", min_value=1) for i in entry_ids})
        with self._tx():
            for entry_id in ids:
                entry = self._get(entry_id, for_update=True)
                if entry.status == TimeEntryStatus.ACTIVE:
                    raise ConflictError(f"Time entry {entry_id} is still active")
            self._entries.set_locked(ids, True)
            self._audit.record(
                action="time_entries_locked", resource_type="time_entry", actor=actor, details={"entryIds": ids}
            )
        logger.info("User %s locked %s time entries", actor.user_id, len(ids))
        return [self._get(i) for i in ids]

    def unlock_entry(self, actor: Actor, entry_id: int) -> TimeEntry:
        require(actor.role, Action.TIME_LOCK)
        with self._tx():
            self._get(entry_id, for_update=True)
            self._entries.set_locked([entry_id], False)
            self._audit.record(action="time_entry_unlocked", resource_type="time_entry", resource_id=entry_id, actor=actor)
        logger.info("User %s unlocked time entry %s", actor.user_id, entry_id)
        return self._get(entry_id)

    def auto_clock_out(self, actor: Optional[Actor] = None, *, max_hours: Any = None) -> list[int]:
        """Close active entries open longer than max_hours at clockIn + max_hours."""

        if actor is not None:
            require(actor.role, Action.TIME_AUTO_CLOCK_OUT)
        if max_hours is None:
            hours = float(self._auto_hours)
        else:
            hours = float(parse_decimal(max_hours, "maxHours", min_value=Decimal("0.01")))
        limit = timedelta(hours=hours)
        cutoff = self._clock() - limit

        closed: list[int] = []
        with self._tx():
            for entry in self._entries.list(clock_in_before=cutoff, statuses=[TimeEntryStatus.ACTIVE]):
                if entry.locked:
                    continue
                if self._entries.close(entry.id, clock_out=entry.clock_in + limit, status=TimeEntryStatus.AUTO_CLOCKED_OUT):
                    closed.append(entry.id)
            if closed:
                self._audit.record(
                    action="auto_clock_out",
                    resource_type="time_entry",
                    actor=actor,
                    details={"entryIds": closed, "maxHours": hours},
                )
        if closed:
            logger.info("Auto clocked out %s entries: %s", len(closed), closed)
        return closed
