from __future__ import annotations

from datetime import timedelta

import pytest

from src.outreach_ops.outreach_ops.core.enums import Role
from src.outreach_ops.outreach_ops.core.exceptions import AuthorizationError
from tests.fakes import actor_for, add_user


def test_audit_logs_newest_first_and_filtered(container, repos, clock):
    owner = add_user(repos, "owner", Role.OWNER)
    nurse = add_user(repos, "nurse", Role.RN)
    container.auth_service.logout(actor_for(nurse))
    clock.now += timedelta(minutes=1)
    container.auth_service.logout(actor_for(owner))

    logs = container.audit_log_service.list_logs(actor_for(owner))
    assert [log.user_id for log in logs] == [owner.id, nurse.id]

    only_nurse = container.audit_log_service.list_logs(actor_for(owner), user_id=str(nurse.id))
    assert [log.user_id for log in only_nurse] == [nurse.id]
    assert only_nurse[0].ip_address == "127.0.0.1"


def test_limit_is_applied(container, repos):
    owner = add_user(repos, "owner", Role.OWNER)
    for _ in range(5):
        container.auth_service.logout(actor_for(owner))

    assert len(container.audit_log_service.list_logs(actor_for(owner), limit="2")) == 2


def test_audit_view_restricted(container, repos):
    payroll = add_user(repos, "payroll", Role.PAYROLL)

    with pytest.raises(AuthorizationError):
        container.audit_log_service.list_logs(actor_for(payroll))
