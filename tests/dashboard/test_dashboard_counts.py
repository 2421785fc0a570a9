from __future__ import annotations

from datetime import timedelta

from src.outreach_ops.outreach_ops.core.enums import Role
from tests.fakes import actor_for, add_user


def test_counts_for_staff_hide_review_queues(container, repos):
    scheduler = add_user(repos, "sched", Role.SCHEDULER)
    nurse = add_user(repos, "nurse", Role.RN)
    for day in (5, 6):
        container.shift_service.create_shift(
            actor_for(scheduler),
            {"title": "Visit", "startTime": f"2026-03-0{day}T08:00:00", "endTime": f"2026-03-0{day}T12:00:00"},
        )
    staffed = container.shift_service.list_shifts()[0]
    container.assignment_service.create_assignment(actor_for(scheduler), staffed.id, nurse.id)
    container.time_clock_service.clock_in(actor_for(nurse), {})

    counts = container.dashboard_service.counts(actor_for(nurse))

    assert counts.open_shifts == 1
    assert counts.pending_assignments == 1
    assert counts.clocked_in is True
    assert counts.submitted_timesheets is None
    assert counts.expiring_documents is None


def test_counts_for_admin_include_review_queues(container, repos, fixed_now):
    admin = add_user(repos, "admin", Role.ADMIN)
    nurse = add_user(repos, "nurse", Role.RN)
    for days in (5, -2, 90):
        container.document_service.create_document(
            actor_for(nurse),
            {"title": "CPR", "fileUrl": "f.pdf", "expiryDate": (fixed_now + timedelta(days=days)).isoformat()},
        )
    ts = container.timesheet_service.generate(actor_for(nurse), nurse.id, "2026-03-02", "2026-03-09")
    container.timesheet_service.submit(actor_for(nurse), ts.id)

    counts = container.dashboard_service.counts(actor_for(admin))

    assert counts.clocked_in is False
    assert counts.submitted_timesheets == 1
    assert counts.expiring_documents == 1
    assert counts.expired_documents == 1
