from __future__ import annotations

import threading
import time

import pytest

from src.outreach_ops.outreach_ops.core.enums import AssignmentStatus, Role, ShiftStatus, UserStatus
from src.outreach_ops.outreach_ops.core.exceptions import (
    AuthorizationError,
    CapacityExceededError,
    ConflictError,
    ValidationError,
)
from tests.fakes import actor_for, add_user


@pytest.fixture
def scheduler(repos):
    return add_user(repos, "sched", Role.SCHEDULER)


def _shift(container, scheduler, max_assignees=1):
    return container.shift_service.create_shift(
        actor_for(scheduler),
        {
            "title": "Clinic",
            "startTime": "2026-03-05T08:00:00",
            "endTime": "2026-03-05T16:00:00",
            "maxAssignees": max_assignees,
        },
    )


def test_capacity_is_enforced(container, repos, scheduler):
    shift = _shift(container, scheduler, max_assignees=1)
    first = add_user(repos, "first", Role.RN)
    second = add_user(repos, "second", Role.LPN)

    container.assignment_service.create_assignment(actor_for(scheduler), shift.id, first.id)

    with pytest.raises(CapacityExceededError):
        container.assignment_service.create_assignment(actor_for(scheduler), shift.id, second.id)
    assert repos.assignments.count_active(shift.id) == 1


def test_simultaneous_assignments_cannot_overfill_shift(container, repos, scheduler, monkeypatch):
    shift = _shift(container, scheduler, max_assignees=1)
    nurses = [add_user(repos, f"nurse{i}", Role.RN) for i in range(4)]
    count_active = repos.assignments.count_active

    def slow_count(shift_id):
        n = count_active(shift_id)
        time.sleep(0.02)
        return n

    monkeypatch.setattr(repos.assignments, "count_active", slow_count)
    start = threading.Barrier(len(nurses))
    outcomes = []

    def assign(nurse):
        start.wait()
        try:
            container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)
            outcomes.append("assigned")
        except CapacityExceededError:
            outcomes.append("full")

    threads = [threading.Thread(target=assign, args=(n,)) for n in nurses]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert sorted(outcomes) == ["assigned", "full", "full", "full"]
    assert count_active(shift.id) == 1


def test_first_assignment_moves_shift_to_assigned(container, repos, scheduler):
    shift = _shift(container, scheduler, max_assignees=2)
    nurse = add_user(repos, "nurse", Role.RN)

    container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)

    assert repos.shifts.get_by_id(shift.id).status == ShiftStatus.ASSIGNED


def test_duplicate_assignment_is_conflict(container, repos, scheduler):
    shift = _shift(container, scheduler, max_assignees=3)
    nurse = add_user(repos, "nurse", Role.RN)
    container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)

    with pytest.raises(ConflictError):
        container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)


def test_archived_user_cannot_be_assigned(container, repos, scheduler):
    shift = _shift(container, scheduler)
    gone = add_user(repos, "gone", Role.RN, status=UserStatus.ARCHIVED)

    with pytest.raises(ValidationError):
        container.assignment_service.create_assignment(actor_for(scheduler), shift.id, gone.id)


def test_rejecting_last_assignment_reopens_shift(container, repos, scheduler):
    shift = _shift(container, scheduler)
    nurse = add_user(repos, "nurse", Role.RN)
    assignment = container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)

    rejected = container.assignment_service.reject(actor_for(nurse), assignment.id)

    assert rejected.status == AssignmentStatus.REJECTED
    assert repos.shifts.get_by_id(shift.id).status == ShiftStatus.OPEN


def test_rejected_slot_can_be_refilled(container, repos, scheduler):
    shift = _shift(container, scheduler)
    nurse = add_user(repos, "nurse", Role.RN)
    other = add_user(repos, "other", Role.CNA)
    assignment = container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)
    container.assignment_service.reject(actor_for(nurse), assignment.id)

    refill = container.assignment_service.create_assignment(actor_for(scheduler), shift.id, other.id)

    assert refill.status == AssignmentStatus.ASSIGNED
    assert repos.shifts.get_by_id(shift.id).status == ShiftStatus.ASSIGNED
    with pytest.raises(CapacityExceededError):
        container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)


def test_accept_records_accepted_at(container, repos, scheduler, clock):
    shift = _shift(container, scheduler)
    nurse = add_user(repos, "nurse", Role.RN)
    assignment = container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)

    accepted = container.assignment_service.accept(actor_for(nurse), assignment.id)

    assert accepted.status == AssignmentStatus.ACCEPTED
    assert accepted.accepted_at >= accepted.assigned_at
    with pytest.raises(ConflictError):
        container.assignment_service.accept(actor_for(nurse), assignment.id)


def test_other_staff_cannot_answer_assignment(container, repos, scheduler):
    shift = _shift(container, scheduler)
    nurse = add_user(repos, "nurse", Role.RN)
    other = add_user(repos, "other", Role.CNA)
    assignment = container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)

    with pytest.raises(AuthorizationError):
        container.assignment_service.accept(actor_for(other), assignment.id)


def test_lowering_capacity_below_active_count_is_conflict(container, repos, scheduler):
    shift = _shift(container, scheduler, max_assignees=2)
    for name in ("a", "b"):
        user = add_user(repos, name, Role.RN)
        container.assignment_service.create_assignment(actor_for(scheduler), shift.id, user.id)

    with pytest.raises(ConflictError):
        container.shift_service.update_shift(actor_for(scheduler), shift.id, {"maxAssignees": 1})


def test_staff_only_list_their_assignments(container, repos, scheduler):
    shift = _shift(container, scheduler, max_assignees=2)
    nurse = add_user(repos, "nurse", Role.RN)
    other = add_user(repos, "other", Role.CNA)
    for user in (nurse, other):
        container.assignment_service.create_assignment(actor_for(scheduler), shift.id, user.id)

    mine = container.assignment_service.list_assignments(actor_for(nurse))

    assert [a.user_id for a in mine] == [nurse.id]
    with pytest.raises(AuthorizationError):
        container.assignment_service.list_assignments(actor_for(nurse), user_id=other.id)
