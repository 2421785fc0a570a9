from datetime import datetime
from decimal import Decimal

import pytest

from src.outreach_ops.outreach_ops.core.enums import TimeEntryStatus
from src.outreach_ops.outreach_ops.core.exceptions import ValidationError
from src.outreach_ops.outreach_ops.timeclock.factory import ClockOutPolicyFactory
from src.outreach_ops.outreach_ops.timeclock.model import TimeEntry
from src.outreach_ops.outreach_ops.timeclock.policies.attachment_required import AttachmentRequiredPolicy
from src.outreach_ops.outreach_ops.timeclock.policies.exempt import AttachmentExemptPolicy


def _entry(job_name):
    return TimeEntry(
        id=1,
        user_id=1,
        clock_in=datetime(2026, 3, 4, 8, 0),
        hourly_rate=Decimal("40.00"),
        status=TimeEntryStatus.ACTIVE,
        job_name=job_name,
    )


def test_factory_matches_exempt_jobs_case_insensitively():
    factory = ClockOutPolicyFactory(exempt_jobs=("Training", " Office "))

    assert isinstance(factory.for_job("training"), AttachmentExemptPolicy)
    assert isinstance(factory.for_job("OFFICE"), AttachmentExemptPolicy)
    assert isinstance(factory.for_job("Home Visit"), AttachmentRequiredPolicy)
    assert isinstance(factory.for_job(None), AttachmentRequiredPolicy)


def test_blank_exempt_names_are_ignored():
    factory = ClockOutPolicyFactory(exempt_jobs=("", "  "))

    assert not factory.is_exempt("")
    assert not factory.is_exempt(None)


def test_required_policy_rejects_missing_attachments():
    with pytest.raises(ValidationError) as exc:
        AttachmentRequiredPolicy().check(_entry("Home Visit"), [])

    assert "shiftNoteAttachments" in exc.value.fields
    AttachmentRequiredPolicy().check(_entry("Home Visit"), ["note.pdf"])


def test_exempt_policy_accepts_nothing():
    assert AttachmentExemptPolicy().check(_entry("Training"), []) is None
