from __future__ import annotations

import logging
from typing import Any, Callable, ContextManager, Sequence

from ..audit.service import AuditTrail
from ..common.datetime_utils import utc_now
from ..common.validators import optional_str, parse_int
from ..core.actor import Actor
from ..core.enums import AssignmentStatus, ShiftStatus, UserStatus
from ..core.exceptions import AuthorizationError, CapacityExceededError, ConflictError, NotFoundError, ValidationError
from ..core.permissions import Action, can, require
from ..users.repository import UserRepository
from .model import ShiftAssignment
from .repository import ShiftAssignmentRepository, ShiftRepository
from .state_machine import ASSIGNABLE, check_assignment_transition, check_shift_transition, effective_shift_status

logger = logging.getLogger(__name__)


class AssignmentService:
    """Use cases: assign users to shifts under the maxAssignees capacity.

    Every write runs inside one transaction that first row-locks the shift,
    so concurrent assignment requests for a shift are serialized and the
    active-assignment count cannot exceed capacity.
    """

    def __init__(
        self,
        assignments: ShiftAssignmentRepository,
        shifts: ShiftRepository,
        users: UserRepository,
        audit: AuditTrail,
        transaction: Callable[[], ContextManager],
        *,
        clock: Callable = utc_now,
    ):
        self._assignments = assignments
        self._shifts = shifts
        self._users = users
        self._audit = audit
        self._tx = transaction
        self._clock = clock

    def _get(self, assignment_id: int) -> ShiftAssignment:
        assignment = self._assignments.get_by_id(assignment_id)
        if not assignment:
            raise NotFoundError(f"Shift assignment {assignment_id} not found")
        return assignment

    def create_assignment(self, actor: Actor, shift_id: int, user_id: Any, notes: Any = None) -> ShiftAssignment:
        require(actor.role, Action.SHIFTS_ASSIGN)
        uid = parse_int(user_id, "userId", min_value=1)
        note = optional_str(notes, "notes")
        now = self._clock()

        with self._tx():
            shift = self._shifts.get_for_update(shift_id)
            if not shift:
                raise NotFoundError(f"Shift {shift_id} not found")
            status = effective_shift_status(shift, now)
            if status not in ASSIGNABLE:
                raise ConflictError(f"Shift is {status.value} and cannot take new assignments")

            user = self._users.get_by_id(uid)
            if not user:
                raise NotFoundError(f"User {uid} not found")
            if user.status == UserStatus.ARCHIVED:
                raise ValidationError("Archived users cannot be assigned", {"userId": "user is archived"})

            existing = self._assignments.get_for_shift_user(shift_id, uid)
            if existing and existing.is_active:
                raise ConflictError("User is already assigned to this shift")

            active = self._assignments.count_active(shift_id)
            if active >= shift.max_assignees:
                logger.warning("Shift %s is full (%s/%s), rejected user %s", shift_id, active, shift.max_assignees, uid)
                raise CapacityExceededError(
                    f"Shift {shift_id} already has {active} of {shift.max_assignees} assignee(s)"
                )

            if existing:
                # The (shift, user) pair is unique; a rejected row is re-opened.
                self._assignments.update(
                    existing.id,
                    {"status": AssignmentStatus.ASSIGNED, "assigned_at": now, "accepted_at": None, "notes": note},
                )
                assignment_id = existing.id
            else:
                assignment_id = self._assignments.create(
                    ShiftAssignment(
                        id=0,
                        shift_id=shift_id,
                        user_id=uid,
                        status=AssignmentStatus.ASSIGNED,
                        assigned_at=now,
                        notes=note,
                    )
                )

            if shift.status == ShiftStatus.OPEN:
                check_shift_transition(shift.status, ShiftStatus.ASSIGNED)
                self._shifts.set_status(shift_id, ShiftStatus.ASSIGNED, expected=ShiftStatus.OPEN)

            self._audit.record(
                action="shift_assigned",
                resource_type="shift_assignment",
                resource_id=assignment_id,
                actor=actor,
                details={"shiftId": shift_id, "userId": uid},
            )
        logger.info("User %s assigned to shift %s (%s/%s)", uid, shift_id, active + 1, shift.max_assignees)
        return self._get(assignment_id)

    def list_assignments(
        self,
        actor: Actor,
        *,
        shift_id: Any = None,
        user_id: Any = None,
    ) -> Sequence[ShiftAssignment]:
        sid = parse_int(shift_id, "shiftId", min_value=1) if shift_id is not None else None
        uid = parse_int(user_id, "userId", min_value=1) if user_id is not None else None
        if not (can(actor.role, Action.SHIFTS_ASSIGN) or can(actor.role, Action.USERS_VIEW_ALL)):
            if uid is not None and uid != actor.user_id:
                raise AuthorizationError("You can only view your own assignments")
            uid = actor.user_id
        return self._assignments.list(shift_id=sid, user_id=uid)

    def _check_actor(self, actor: Actor, assignment: ShiftAssignment) -> None:
        if assignment.user_id != actor.user_id and not can(actor.role, Action.SHIFTS_ASSIGN):
            raise AuthorizationError("Only the assignee or a scheduler can change this assignment")

    def _transition(
        self,
        actor: Actor,
        assignment_id: int,
        target: AssignmentStatus,
    ) -> ShiftAssignment:
        now = self._clock()
        with self._tx():
            assignment = self._get(assignment_id)
            self._check_actor(actor, assignment)
            shift = self._shifts.get_for_update(assignment.shift_id)
            # Re-read under the shift lock.
            assignment = self._get(assignment_id)
            check_assignment_transition(assignment.status, target)

            accepted_at = now if target == AssignmentStatus.ACCEPTED else None
            if accepted_at is not None and accepted_at < assignment.assigned_at:
                accepted_at = assignment.assigned_at
            if not self._assignments.set_status(
                assignment_id, target, expected=assignment.status, accepted_at=accepted_at
            ):
                raise ConflictError("Assignment changed concurrently; retry")

            reopened = False
            if (
                target == AssignmentStatus.REJECTED
                and shift is not None
                and shift.status == ShiftStatus.ASSIGNED
                and self._assignments.count_active(shift.id) == 0
            ):
                check_shift_transition(shift.status, ShiftStatus.OPEN)
                reopened = self._shifts.set_status(shift.id, ShiftStatus.OPEN, expected=ShiftStatus.ASSIGNED)

            self._audit.record(
                action=f"shift_assignment_{target.value}",
                resource_type="shift_assignment",
                resource_id=assignment_id,
                actor=actor,
                details={"shiftId": assignment.shift_id, "from": assignment.status.value, "to": target.value},
            )
        logger.info("Assignment %s %s -> %s", assignment_id, assignment.status.value, target.value)
        if reopened:
            logger.info("Shift %s reopened (no active assignments left)", assignment.shift_id)
        return self._get(assignment_id)

    def accept(self, actor: Actor, assignment_id: int) -> ShiftAssignment:
        return self._transition(actor, assignment_id, AssignmentStatus.ACCEPTED)

    def reject(self, actor: Actor, assignment_id: int) -> ShiftAssignment:
        return self._transition(actor, assignment_id, AssignmentStatus.REJECTED)

    def complete(self, actor: Actor, assignment_id: int) -> ShiftAssignment:
        return self._transition(actor, assignment_id, AssignmentStatus.COMPLETED)

    def upcoming_for_user(self, user_id: int) -> Sequence[ShiftAssignment]:
        """Assignments still waiting for the user's answer."""

        return [a for a in self._assignments.list(user_id=user_id) if a.status == AssignmentStatus.ASSIGNED]
