"""In-memory repositories for service tests.

Each fake honors the same guards as its MySQL counterpart: unique keys raise
the same errors, guarded status writes only apply from the expected status.
`fake_transaction` rolls writes back on error and holds row locks until exit.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from src.outreach_ops.outreach_ops.container import Repositories, build_services
from src.outreach_ops.outreach_ops.core.actor import Actor
from src.outreach_ops.outreach_ops.core.enums import (
    AssignmentStatus,
    Role,
    ShiftStatus,
    TimeEntryStatus,
    UserStatus,
)
from src.outreach_ops.outreach_ops.core.exceptions import AlreadyClockedInError, ConflictError
from src.outreach_ops.outreach_ops.users.model import User


_MISSING = object()


class _TxState:
    def __init__(self):
        self.undo: list = []
        self.locks: list = []


_tx_state: ContextVar[Optional[_TxState]] = ContextVar("fake_tx_state", default=None)


@contextmanager
def fake_transaction():
    """Stand-in for `database.connection.transaction`.

    Writes are undone if the block raises and row locks taken with
    `for_update=True` are held until the outermost block exits. Nested
    blocks join the outer one.
    """
    if _tx_state.get() is not None:
        yield
        return
    state = _TxState()
    token = _tx_state.set(state)
    try:
        yield
    except BaseException:
        for store, row_id, old in reversed(state.undo):
            store._restore(row_id, old)
        raise
    finally:
        _tx_state.reset(token)
        for lock in reversed(state.locks):
            lock.release()


class _Store:
    def __init__(self):
        self.rows: dict[int, object] = {}
        self._next_id = 1
        self._mutex = threading.Lock()
        self._row_locks: dict[int, threading.Lock] = {}

    def _insert(self, obj) -> int:
        with self._mutex:
            new_id = self._next_id
            self._next_id += 1
        self._put(new_id, replace(obj, id=new_id))
        return new_id

    def _update(self, row_id: int, changes) -> bool:
        row = self.rows.get(int(row_id))
        if row is None:
            return False
        if changes:
            self._put(int(row_id), replace(row, **dict(changes)))
        return True

    def _put(self, row_id: int, obj) -> None:
        self._journal(row_id)
        self.rows[row_id] = obj

    def _pop(self, row_id: int):
        self._journal(row_id)
        return self.rows.pop(row_id, None)

    def _journal(self, row_id: int) -> None:
        state = _tx_state.get()
        if state is not None:
            state.undo.append((self, row_id, self.rows.get(row_id, _MISSING)))

    def _restore(self, row_id: int, old) -> None:
        if old is _MISSING:
            self.rows.pop(row_id, None)
        else:
            self.rows[row_id] = old

    def _lock_row(self, row_id: int) -> None:
        state = _tx_state.get()
        if state is None:
            return
        with self._mutex:
            lock = self._row_locks.setdefault(row_id, threading.Lock())
        if lock in state.locks:
            return
        lock.acquire()
        state.locks.append(lock)

    def get_by_id(self, row_id: int, *, for_update: bool = False):
        if for_update:
            self._lock_row(int(row_id))
        return self.rows.get(int(row_id))


class FakeUserRepo(_Store):
    def get_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.rows.values() if u.username == username), None)

    def get_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.rows.values() if u.email == email), None)

    def list_all(self):
        return list(self.rows.values())

    def create_user(self, user: User) -> int:
        if self.get_by_username(user.username) or self.get_by_email(user.email):
            raise ConflictError("Username or email already exists")
        return self._insert(user)

    def update_user(self, user_id, changes) -> bool:
        return self._update(user_id, changes)

    def consume_onboarding_token(self, token, *, now, password_hash, custom_fields):
        for user in self.rows.values():
            if (
                user.onboarding_token == token
                and not user.onboarding_completed
                and user.status == UserStatus.PENDING_ONBOARDING
                and user.onboarding_token_expiry is not None
                and user.onboarding_token_expiry > now
            ):
                changes = dict(
                    password_hash=password_hash,
                    status=UserStatus.ACTIVE,
                    onboarding_completed=True,
                    onboarding_token=None,
                    onboarding_token_expiry=None,
                )
                if custom_fields is not None:
                    changes["custom_fields"] = dict(custom_fields)
                self._update(user.id, changes)
                return user.id
        return None


class FakeScheduleRepo(_Store):
    def list_all(self, *, status=None):
        return [s for s in self.rows.values() if status is None or s.status == status]

    def create(self, schedule) -> int:
        return self._insert(schedule)

    def update(self, schedule_id, changes) -> bool:
        return self._update(schedule_id, changes)


class FakeTemplateRepo(_Store):
    def __init__(self, shifts: "FakeShiftRepo"):
        super().__init__()
        self._shifts = shifts

    def list_all(self):
        return list(self.rows.values())

    def create(self, template) -> int:
        return self._insert(template)

    def update(self, template_id, changes) -> bool:
        return self._update(template_id, changes)

    def delete_if_unused(self, template_id) -> bool:
        if any(s.template_id == template_id for s in self._shifts.rows.values()):
            return False
        return self._pop(int(template_id)) is not None


class FakeShiftRepo(_Store):
    def __init__(self):
        super().__init__()
        self.assignments: Optional["FakeAssignmentRepo"] = None
        self.entries: Optional["FakeTimeEntryRepo"] = None

    def get_for_update(self, shift_id):
        return self.get_by_id(shift_id, for_update=True)

    def list(self, *, schedule_id=None, starts_from=None, starts_before=None):
        out = []
        for s in self.rows.values():
            if schedule_id is not None and s.schedule_id != schedule_id:
                continue
            if starts_from is not None and s.start_time < starts_from:
                continue
            if starts_before is not None and s.start_time >= starts_before:
                continue
            out.append(s)
        return sorted(out, key=lambda s: (s.start_time, s.id))

    def create(self, shift) -> int:
        return self._insert(shift)

    def update(self, shift_id, changes) -> bool:
        return self._update(shift_id, changes)

    def set_status(self, shift_id, status, *, expected) -> bool:
        shift = self.rows.get(int(shift_id))
        if shift is None or shift.status != expected:
            return False
        self._put(int(shift_id), replace(shift, status=status))
        return True

    def list_started_assigned(self, now: datetime):
        return sorted(s.id for s in self.rows.values() if s.status == ShiftStatus.ASSIGNED and s.start_time <= now)

    def delete_if_unreferenced(self, shift_id) -> bool:
        if self.assignments and self.assignments.list(shift_id=shift_id):
            return False
        if self.entries and any(e.shift_id == shift_id for e in self.entries.rows.values()):
            return False
        return self._pop(int(shift_id)) is not None


class FakeAssignmentRepo(_Store):
    def get_for_shift_user(self, shift_id, user_id):
        return next(
            (a for a in self.rows.values() if a.shift_id == shift_id and a.user_id == user_id),
            None,
        )

    def list(self, *, shift_id=None, user_id=None):
        return [
            a
            for a in self.rows.values()
            if (shift_id is None or a.shift_id == shift_id) and (user_id is None or a.user_id == user_id)
        ]

    def count_active(self, shift_id) -> int:
        return sum(1 for a in self.list(shift_id=shift_id) if a.status != AssignmentStatus.REJECTED)

    def create(self, assignment) -> int:
        if self.get_for_shift_user(assignment.shift_id, assignment.user_id):
            raise ConflictError("User is already assigned to this shift")
        return self._insert(assignment)

    def update(self, assignment_id, changes) -> bool:
        return self._update(assignment_id, changes)

    def set_status(self, assignment_id, status, *, expected, accepted_at=None) -> bool:
        a = self.rows.get(int(assignment_id))
        if a is None or a.status != expected:
            return False
        changes = {"status": status}
        if accepted_at is not None:
            changes["accepted_at"] = accepted_at
        self._put(int(assignment_id), replace(a, **changes))
        return True


class FakeTimeEntryRepo(_Store):
    def get_active_for_user(self, user_id, *, for_update=False):
        return next(
            (e for e in self.rows.values() if e.user_id == user_id and e.status == TimeEntryStatus.ACTIVE),
            None,
        )

    def list(self, *, user_id=None, clock_in_from=None, clock_in_before=None, statuses=None):
        wanted = None if statuses is None else set(statuses)
        out = []
        for e in self.rows.values():
            if user_id is not None and e.user_id != user_id:
                continue
            if clock_in_from is not None and e.clock_in < clock_in_from:
                continue
            if clock_in_before is not None and e.clock_in >= clock_in_before:
                continue
            if wanted is not None and e.status not in wanted:
                continue
            out.append(e)
        return sorted(out, key=lambda e: (e.clock_in, e.id))

    def create(self, entry) -> int:
        if entry.status == TimeEntryStatus.ACTIVE and self.get_active_for_user(entry.user_id):
            raise AlreadyClockedInError("User already has an active time entry")
        return self._insert(entry)

    def update(self, entry_id, changes) -> bool:
        return self._update(entry_id, changes)

    def close(self, entry_id, *, clock_out, status, changes=None) -> bool:
        e = self.rows.get(int(entry_id))
        if e is None or e.status != TimeEntryStatus.ACTIVE or e.locked:
            return False
        self._put(int(entry_id), replace(e, **dict(changes or {}), clock_out=clock_out, status=status))
        return True

    def set_locked(self, entry_ids, locked) -> int:
        n = 0
        for entry_id in entry_ids:
            if self._update(entry_id, {"locked": bool(locked)}):
                n += 1
        return n


class FakeTimesheetRepo(_Store):
    def get_for_period(self, user_id, period_start, period_end, *, for_update=False):
        return next(
            (
                t
                for t in self.rows.values()
                if t.user_id == user_id and t.period_start == period_start and t.period_end == period_end
            ),
            None,
        )

    def list(self, *, user_id=None, status=None):
        return [
            t
            for t in self.rows.values()
            if (user_id is None or t.user_id == user_id) and (status is None or t.status == status)
        ]

    def create(self, timesheet) -> int:
        if self.get_for_period(timesheet.user_id, timesheet.period_start, timesheet.period_end):
            raise ConflictError("Timesheet already exists for this period")
        return self._insert(timesheet)

    def update(self, timesheet_id, changes) -> bool:
        return self._update(timesheet_id, changes)

    def set_status(self, timesheet_id, status, *, expected, approved_by=None, approved_at=None, notes=None) -> bool:
        t = self.rows.get(int(timesheet_id))
        if t is None or t.status != expected:
            return False
        changes = {"status": status}
        if approved_by is not None or approved_at is not None:
            changes.update(approved_by=approved_by, approved_at=approved_at)
        if notes is not None:
            changes["notes"] = notes
        self._put(int(timesheet_id), replace(t, **changes))
        return True


class FakeDocumentRepo(_Store):
    def list(self, *, user_id=None):
        docs = [d for d in self.rows.values() if user_id is None or d.user_id == user_id]
        return sorted(docs, key=lambda d: (d.uploaded_date, d.id))

    def create(self, document) -> int:
        return self._insert(document)

    def set_status(self, document_id, status, *, expected, approved_by=None, approved_at=None, notes=None) -> bool:
        d = self.rows.get(int(document_id))
        if d is None or d.status != expected:
            return False
        changes = {"status": status}
        if approved_by is not None or approved_at is not None:
            changes.update(approved_by=approved_by, approved_at=approved_at)
        if notes is not None:
            changes["notes"] = notes
        self._put(int(document_id), replace(d, **changes))
        return True


class FakeAuditRepo(_Store):
    def append(self, entry) -> int:
        return self._insert(entry)

    def list(self, *, user_id=None, resource_type=None, limit=100):
        logs = [
            log
            for log in self.rows.values()
            if (user_id is None or log.user_id == user_id)
            and (resource_type is None or log.resource_type == resource_type)
        ]
        logs.sort(key=lambda log: (log.timestamp, log.id), reverse=True)
        return logs[:limit]

    def actions(self) -> list[str]:
        return [log.action for log in sorted(self.rows.values(), key=lambda log: log.id)]


def make_repos() -> Repositories:
    shifts = FakeShiftRepo()
    assignments = FakeAssignmentRepo()
    entries = FakeTimeEntryRepo()
    shifts.assignments = assignments
    shifts.entries = entries
    return Repositories(
        users=FakeUserRepo(),
        schedules=FakeScheduleRepo(),
        templates=FakeTemplateRepo(shifts),
        shifts=shifts,
        assignments=assignments,
        entries=entries,
        timesheets=FakeTimesheetRepo(),
        documents=FakeDocumentRepo(),
        audit_logs=FakeAuditRepo(),
    )


class Clock:
    """Settable clock passed to services as `clock=`."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeSettings:
    ONBOARDING_TOKEN_DAYS = 7
    ONBOARDING_BASE_URL = "http://testserver"
    ATTACHMENT_EXEMPT_JOBS = ("Training",)
    AUTO_CLOCK_OUT_HOURS = 14
    OVERTIME_WEEKLY_HOURS = 40
    OVERTIME_DAILY_HOURS = None
    WORKWEEK_START_DAY = 0
    DOCUMENT_EXPIRY_WARNING_DAYS = 30


def make_container(clock: Clock, repos: Optional[Repositories] = None):
    return build_services(repos or make_repos(), transaction=fake_transaction, settings=FakeSettings(), clock=clock)


def add_user(
    repos: Repositories,
    username: str,
    role: Role = Role.RN,
    *,
    status: UserStatus = UserStatus.ACTIVE,
    rate: str = "40.00",
    job_rates: Optional[dict] = None,
    password_hash: Optional[str] = None,
) -> User:
    user_id = repos.users.create_user(
        User(
            id=0,
            username=username,
            email=f"{username}@example.org",
            full_name=username.title(),
            role=role,
            status=status,
            default_hourly_rate=Decimal(rate),
            job_rates={k: Decimal(v) for k, v in (job_rates or {}).items()},
            password_hash=password_hash,
            onboarding_completed=status == UserStatus.ACTIVE,
            created_at=datetime(2026, 1, 1),
        )
    )
    return repos.users.get_by_id(user_id)


def actor_for(user: User) -> Actor:
    return Actor(user_id=user.id, role=user.role, ip_address="127.0.0.1", user_agent="pytest")
