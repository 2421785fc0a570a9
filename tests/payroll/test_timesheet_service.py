from __future__ import annotations

import csv
import io
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from src.outreach_ops.outreach_ops.core.enums import Role, TimeEntryStatus, TimesheetStatus
from src.outreach_ops.outreach_ops.core.exceptions import AuthorizationError, ConflictError, ValidationError
from src.outreach_ops.outreach_ops.timeclock.model import TimeEntry
from tests.fakes import actor_for, add_user


def _worked(repos, user, start: datetime, hours: float, status=TimeEntryStatus.COMPLETED):
    repos.entries.create(
        TimeEntry(
            id=0,
            user_id=user.id,
            clock_in=start,
            clock_out=start + timedelta(hours=hours),
            hourly_rate=user.default_hourly_rate,
            status=status,
        )
    )


@pytest.fixture
def people(repos):
    return {
        "payroll": add_user(repos, "payroll", Role.PAYROLL),
        "nurse": add_user(repos, "nurse", Role.RN),
        "owner": add_user(repos, "owner", Role.OWNER),
    }


@pytest.fixture
def week_of_work(repos, people):
    # Monday 2026-03-02 .. Friday, 9h a day
    for i in range(5):
        _worked(repos, people["nurse"], datetime(2026, 3, 2, 8) + timedelta(days=i), 9)


def test_generate_is_idempotent(container, repos, people, week_of_work):
    service = container.timesheet_service
    payroll = actor_for(people["payroll"])

    first = service.generate(payroll, people["nurse"].id, "2026-03-02", "2026-03-09")
    second = service.generate(payroll, people["nurse"].id, "2026-03-02", "2026-03-09")

    assert second.id == first.id
    assert (second.regular_hours, second.overtime_hours, second.total_hours) == (
        Decimal("40.00"),
        Decimal("5.00"),
        Decimal("45.00"),
    )
    assert (first.regular_hours, first.overtime_hours) == (second.regular_hours, second.overtime_hours)
    assert len(repos.timesheets.list(user_id=people["nurse"].id)) == 1


def test_generate_counts_only_closed_entries_in_period(container, repos, people):
    nurse = people["nurse"]
    _worked(repos, nurse, datetime(2026, 3, 2, 8), 8)
    _worked(repos, nurse, datetime(2026, 3, 9, 8), 8)
    repos.entries.create(
        TimeEntry(id=0, user_id=nurse.id, clock_in=datetime(2026, 3, 3, 8), hourly_rate=Decimal("40"), status=TimeEntryStatus.ACTIVE)
    )

    ts = container.timesheet_service.generate(actor_for(people["payroll"]), nurse.id, "2026-03-02", "2026-03-09")

    assert ts.total_hours == Decimal("8.00")


def test_staff_may_generate_own_but_not_others(container, people):
    nurse = actor_for(people["nurse"])

    own = container.timesheet_service.generate(nurse, people["nurse"].id, "2026-03-02", "2026-03-09")
    assert own.status == TimesheetStatus.PENDING

    with pytest.raises(AuthorizationError):
        container.timesheet_service.generate(nurse, people["payroll"].id, "2026-03-02", "2026-03-09")


def test_invalid_period_is_validation_error(container, people):
    with pytest.raises(ValidationError) as exc:
        container.timesheet_service.generate(actor_for(people["payroll"]), people["nurse"].id, "2026-03-09", "2026-03-02")

    assert "periodEnd" in exc.value.fields


def test_approval_flow_and_export(container, repos, people, week_of_work):
    service = container.timesheet_service
    payroll = actor_for(people["payroll"])
    ts = service.generate(payroll, people["nurse"].id, "2026-03-02", "2026-03-09")

    service.submit(actor_for(people["nurse"]), ts.id)
    approved = service.approve(payroll, ts.id, "ok")

    assert approved.status == TimesheetStatus.APPROVED
    assert approved.approved_by == people["payroll"].id
    assert approved.approved_at is not None

    content, exported = service.export(payroll, [ts.id])

    assert [t.status for t in exported] == [TimesheetStatus.EXPORTED]
    rows = list(csv.DictReader(io.StringIO(content)))
    assert rows[0]["username"] == "nurse"
    assert rows[0]["overtime_hours"] == "5.00"

    with pytest.raises(ConflictError):
        service.generate(payroll, people["nurse"].id, "2026-03-02", "2026-03-09")


def test_rejected_timesheet_regenerates_to_pending(container, repos, people, week_of_work):
    service = container.timesheet_service
    payroll = actor_for(people["payroll"])
    ts = service.generate(payroll, people["nurse"].id, "2026-03-02", "2026-03-09")
    service.submit(payroll, ts.id)
    service.reject(payroll, ts.id, "missing Friday")
    _worked(repos, people["nurse"], datetime(2026, 3, 7, 8), 2)

    again = service.generate(payroll, people["nurse"].id, "2026-03-02", "2026-03-09")

    assert again.id == ts.id
    assert again.status == TimesheetStatus.PENDING
    assert again.total_hours == Decimal("47.00")
    assert again.approved_by is None


def test_submitted_timesheet_cannot_be_regenerated(container, people, week_of_work):
    service = container.timesheet_service
    payroll = actor_for(people["payroll"])
    ts = service.generate(payroll, people["nurse"].id, "2026-03-02", "2026-03-09")
    service.submit(payroll, ts.id)

    with pytest.raises(ConflictError):
        service.generate(payroll, people["nurse"].id, "2026-03-02", "2026-03-09")


def test_export_is_all_or_nothing(container, repos, people, week_of_work):
    service = container.timesheet_service
    payroll = actor_for(people["payroll"])
    approved = service.generate(payroll, people["nurse"].id, "2026-03-02", "2026-03-09")
    service.submit(payroll, approved.id)
    service.approve(payroll, approved.id)
    pending = service.generate(payroll, people["nurse"].id, "2026-03-09", "2026-03-16")

    with pytest.raises(ConflictError):
        service.export(payroll, [approved.id, pending.id])

    assert repos.timesheets.get_by_id(approved.id).status == TimesheetStatus.APPROVED


def test_export_with_empty_id_list_exports_nothing(container, repos, people, week_of_work):
    service = container.timesheet_service
    payroll = actor_for(people["payroll"])
    ts = service.generate(payroll, people["nurse"].id, "2026-03-02", "2026-03-09")
    service.submit(payroll, ts.id)
    service.approve(payroll, ts.id)

    content, exported = service.export(payroll, [])

    assert exported == []
    assert list(csv.DictReader(io.StringIO(content))) == []
    assert repos.timesheets.get_by_id(ts.id).status == TimesheetStatus.APPROVED
    assert "timesheets_exported" not in repos.audit_logs.actions()


def test_cannot_approve_own_timesheet(container, repos, people):
    payroll = actor_for(people["payroll"])
    ts = container.timesheet_service.generate(payroll, people["payroll"].id, "2026-03-02", "2026-03-09")
    container.timesheet_service.submit(payroll, ts.id)

    with pytest.raises(AuthorizationError):
        container.timesheet_service.approve(payroll, ts.id)


def test_pending_cannot_be_approved(container, people, week_of_work):
    payroll = actor_for(people["payroll"])
    ts = container.timesheet_service.generate(payroll, people["nurse"].id, "2026-03-02", "2026-03-09")

    with pytest.raises(ConflictError):
        container.timesheet_service.approve(payroll, ts.id)
