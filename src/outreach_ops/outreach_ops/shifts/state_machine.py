"""Status rules for shifts and shift assignments.

Shift: open -> assigned -> in-progress -> completed, and any non-terminal
state -> cancelled. assigned -> open happens only when the last active
assignment is rejected. A stored `assigned` shift whose start time has
passed reads as `in-progress` (see effective_shift_status); the stored
value catches up through sync_started_shifts.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from ..core.enums import AssignmentStatus, ShiftStatus
from ..core.exceptions import ConflictError
from .model import Shift

SHIFT_TRANSITIONS: dict[ShiftStatus, frozenset[ShiftStatus]] = {
    ShiftStatus.OPEN: frozenset({ShiftStatus.ASSIGNED, ShiftStatus.CANCELLED}),
    ShiftStatus.ASSIGNED: frozenset({ShiftStatus.IN_PROGRESS, ShiftStatus.OPEN, ShiftStatus.CANCELLED}),
    ShiftStatus.IN_PROGRESS: frozenset({ShiftStatus.COMPLETED, ShiftStatus.CANCELLED}),
    ShiftStatus.COMPLETED: frozenset(),
    ShiftStatus.CANCELLED: frozenset(),
}

# open/assigned follow assignments; users cannot request them directly.
USER_REQUESTABLE = frozenset({ShiftStatus.IN_PROGRESS, ShiftStatus.COMPLETED, ShiftStatus.CANCELLED})

TERMINAL = frozenset({ShiftStatus.COMPLETED, ShiftStatus.CANCELLED})

# Shifts that can still take new assignees.
ASSIGNABLE = frozenset({ShiftStatus.OPEN, ShiftStatus.ASSIGNED})

ASSIGNMENT_TRANSITIONS: dict[AssignmentStatus, frozenset[AssignmentStatus]] = {
    AssignmentStatus.ASSIGNED: frozenset({AssignmentStatus.ACCEPTED, AssignmentStatus.REJECTED}),
    AssignmentStatus.ACCEPTED: frozenset({AssignmentStatus.COMPLETED, AssignmentStatus.REJECTED}),
    AssignmentStatus.REJECTED: frozenset(),
    AssignmentStatus.COMPLETED: frozenset(),
}


def can_transition(current: ShiftStatus, target: ShiftStatus) -> bool:
    return target in SHIFT_TRANSITIONS[current]


def check_shift_transition(current: ShiftStatus, target: ShiftStatus) -> None:
    if not can_transition(current, target):
        raise ConflictError(f"Invalid shift status transition: {current.value} -> {target.value}")


def check_assignment_transition(current: AssignmentStatus, target: AssignmentStatus) -> None:
    if target not in ASSIGNMENT_TRANSITIONS[current]:
        raise ConflictError(f"Invalid assignment status transition: {current.value} -> {target.value}")


def effective_shift_status(shift: Shift, now: datetime) -> ShiftStatus:
    """Status as of `now`. Pure: never writes anything back."""

    if shift.status == ShiftStatus.ASSIGNED and shift.start_time <= now:
        return ShiftStatus.IN_PROGRESS
    return shift.status


def with_effective_status(shift: Shift, now: datetime) -> Shift:
    status = effective_shift_status(shift, now)
    return shift if status == shift.status else replace(shift, status=status)
