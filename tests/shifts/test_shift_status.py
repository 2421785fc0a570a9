from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from src.outreach_ops.outreach_ops.core.enums import Role, ShiftStatus
from src.outreach_ops.outreach_ops.core.exceptions import ConflictError, ValidationError
from src.outreach_ops.outreach_ops.shifts.model import Shift
from src.outreach_ops.outreach_ops.shifts.state_machine import (
    can_transition,
    check_shift_transition,
    effective_shift_status,
)
from tests.fakes import actor_for, add_user


def _shift(status, start=datetime(2026, 3, 5, 8, 0)):
    return Shift(id=1, title="Visit", start_time=start, end_time=start + timedelta(hours=8), status=status)


def test_completed_to_open_is_conflict():
    with pytest.raises(ConflictError) as exc:
        check_shift_transition(ShiftStatus.COMPLETED, ShiftStatus.OPEN)

    assert "completed -> open" in exc.value.message


@pytest.mark.parametrize(
    "current,target",
    [
        (ShiftStatus.OPEN, ShiftStatus.ASSIGNED),
        (ShiftStatus.ASSIGNED, ShiftStatus.IN_PROGRESS),
        (ShiftStatus.IN_PROGRESS, ShiftStatus.COMPLETED),
        (ShiftStatus.OPEN, ShiftStatus.CANCELLED),
        (ShiftStatus.ASSIGNED, ShiftStatus.CANCELLED),
        (ShiftStatus.IN_PROGRESS, ShiftStatus.CANCELLED),
    ],
)
def test_allowed_transitions(current, target):
    assert can_transition(current, target)


def test_terminal_states_have_no_exit():
    for target in ShiftStatus:
        assert not can_transition(ShiftStatus.CANCELLED, target)
        assert not can_transition(ShiftStatus.COMPLETED, target)


def test_started_assigned_shift_reads_in_progress():
    shift = _shift(ShiftStatus.ASSIGNED)

    assert effective_shift_status(shift, datetime(2026, 3, 5, 7, 59)) == ShiftStatus.ASSIGNED
    assert effective_shift_status(shift, datetime(2026, 3, 5, 8, 0)) == ShiftStatus.IN_PROGRESS
    # open shifts never advance on their own
    assert effective_shift_status(_shift(ShiftStatus.OPEN), datetime(2026, 3, 6)) == ShiftStatus.OPEN


def _create(container, actor, **overrides):
    data = {
        "title": "Home visit",
        "startTime": "2026-03-05T08:00:00Z",
        "endTime": "2026-03-05T12:00:00Z",
        "maxAssignees": 2,
    }
    data.update(overrides)
    return container.shift_service.create_shift(actor, data)


def test_create_shift_validates_range(container, repos):
    scheduler = add_user(repos, "sched", Role.SCHEDULER)

    with pytest.raises(ValidationError) as exc:
        _create(container, actor_for(scheduler), endTime="2026-03-05T07:00:00Z")

    assert "endTime" in exc.value.fields


def test_create_shift_takes_template_color(container, repos):
    scheduler = add_user(repos, "sched", Role.SCHEDULER)
    template = container.shift_template_service.create_template(
        actor_for(scheduler), {"title": "Day", "startTime": "7:00a", "endTime": "7:00p", "color": "#0EA5E9"}
    )

    shift = _create(container, actor_for(scheduler), templateId=template.id)

    assert shift.status == ShiftStatus.OPEN
    assert shift.color == "#0EA5E9"
    with pytest.raises(ConflictError):
        container.shift_template_service.delete_template(actor_for(scheduler), template.id)


def test_change_status_to_open_from_completed_is_conflict(container, repos, clock):
    scheduler = add_user(repos, "sched", Role.SCHEDULER)
    nurse = add_user(repos, "nurse", Role.RN)
    shift = _create(container, actor_for(scheduler))
    container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)
    clock.now = datetime(2026, 3, 5, 9, 0)
    container.shift_service.change_status(actor_for(scheduler), shift.id, "completed")

    with pytest.raises(ConflictError):
        container.shift_service.change_status(actor_for(scheduler), shift.id, "open")


def test_open_cannot_be_requested_directly(container, repos):
    scheduler = add_user(repos, "sched", Role.SCHEDULER)
    nurse = add_user(repos, "nurse", Role.RN)
    shift = _create(container, actor_for(scheduler))
    container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)

    with pytest.raises(ValidationError):
        container.shift_service.change_status(actor_for(scheduler), shift.id, "open")


def test_complete_started_shift_catches_up_stored_status(container, repos, clock):
    scheduler = add_user(repos, "sched", Role.SCHEDULER)
    nurse = add_user(repos, "nurse", Role.RN)
    shift = _create(container, actor_for(scheduler))
    container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)

    clock.now = datetime(2026, 3, 5, 9, 0)
    assert container.shift_service.get_shift(shift.id).status == ShiftStatus.IN_PROGRESS
    assert repos.shifts.get_by_id(shift.id).status == ShiftStatus.ASSIGNED

    done = container.shift_service.change_status(actor_for(scheduler), shift.id, "completed")

    assert done.status == ShiftStatus.COMPLETED
    with pytest.raises(ConflictError):
        container.shift_service.update_shift(actor_for(scheduler), shift.id, {"title": "Late edit"})


def test_sync_started_shifts_persists_in_progress(container, repos, clock):
    scheduler = add_user(repos, "sched", Role.SCHEDULER)
    nurse = add_user(repos, "nurse", Role.RN)
    started = _create(container, actor_for(scheduler))
    later = _create(container, actor_for(scheduler), startTime="2026-03-09T08:00:00Z", endTime="2026-03-09T12:00:00Z")
    for shift in (started, later):
        container.assignment_service.create_assignment(actor_for(scheduler), shift.id, nurse.id)

    clock.now = datetime(2026, 3, 5, 8, 30)
    moved = container.shift_service.sync_started_shifts()

    assert moved == [started.id]
    assert repos.shifts.get_by_id(started.id).status == ShiftStatus.IN_PROGRESS
    assert repos.shifts.get_by_id(later.id).status == ShiftStatus.ASSIGNED


def test_delete_shift_with_assignments_is_conflict(container, repos):
    scheduler = add_user(repos, "sched", Role.SCHEDULER)
    nurse = add_user(repos, "nurse", Role.RN)
    empty = _create(container, actor_for(scheduler))
    staffed = _create(container, actor_for(scheduler))
    container.assignment_service.create_assignment(actor_for(scheduler), staffed.id, nurse.id)

    container.shift_service.delete_shift(actor_for(scheduler), empty.id)

    assert repos.shifts.get_by_id(empty.id) is None
    with pytest.raises(ConflictError):
        container.shift_service.delete_shift(actor_for(scheduler), staffed.id)


def test_list_filters_by_effective_status(container, repos, clock):
    scheduler = add_user(repos, "sched", Role.SCHEDULER)
    nurse = add_user(repos, "nurse", Role.RN)
    staffed = _create(container, actor_for(scheduler))
    _create(container, actor_for(scheduler), startTime="2026-03-09T08:00:00Z", endTime="2026-03-09T12:00:00Z")
    container.assignment_service.create_assignment(actor_for(scheduler), staffed.id, nurse.id)
    clock.now = datetime(2026, 3, 5, 9, 0)

    in_progress = container.shift_service.list_shifts(status="in-progress")

    assert [s.id for s in in_progress] == [staffed.id]
