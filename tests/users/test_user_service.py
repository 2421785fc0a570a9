from __future__ import annotations

from datetime import timedelta

import pytest
from werkzeug.security import generate_password_hash

from src.outreach_ops.outreach_ops.core.enums import Role, UserStatus
from src.outreach_ops.outreach_ops.core.exceptions import (
    AuthenticationError,
    AuthnError,
    AuthorizationError,
    ConflictError,
    ValidationError,
)
from tests.fakes import actor_for, add_user


def _new_user(container, actor, **overrides):
    data = {
        "username": "jdoe",
        "email": "jdoe@example.org",
        "fullName": "Jane Doe",
        "role": "RN",
        "customFields": {"licenseNumber": "RN-123"},
    }
    data.update(overrides)
    return container.user_service.create_user(actor, data)


def test_create_user_starts_pending_with_onboarding_link(container, repos):
    owner = add_user(repos, "owner", Role.OWNER)

    user, link = _new_user(container, actor_for(owner))

    assert user.status == UserStatus.PENDING_ONBOARDING
    assert user.onboarding_token
    assert link == f"http://testserver/onboarding?token={user.onboarding_token}"
    log = repos.audit_logs.list(resource_type="user")[0]
    assert log.action == "user_created"
    assert log.phi_accessed is True
    assert log.phi_fields == ["customFields.licenseNumber"]


def test_create_user_requires_permission(container, repos):
    nurse = add_user(repos, "nurse", Role.RN)

    with pytest.raises(AuthorizationError):
        _new_user(container, actor_for(nurse))


def test_create_user_reports_all_invalid_fields(container, repos):
    hr = add_user(repos, "hr", Role.HR)

    with pytest.raises(ValidationError) as exc:
        container.user_service.create_user(actor_for(hr), {"username": "", "email": "nope", "role": "Boss"})

    assert set(exc.value.fields) >= {"username", "email", "fullName", "role"}


def test_only_owner_grants_owner_role(container, repos):
    admin = add_user(repos, "admin", Role.ADMIN)

    with pytest.raises(AuthorizationError):
        _new_user(container, actor_for(admin), role="Owner")


def test_duplicate_username_is_conflict(container, repos):
    owner = add_user(repos, "owner", Role.OWNER)
    _new_user(container, actor_for(owner))

    with pytest.raises(ConflictError):
        _new_user(container, actor_for(owner), email="other@example.org")


def test_onboarding_token_is_single_use(container, repos):
    owner = add_user(repos, "owner", Role.OWNER)
    user, _ = _new_user(container, actor_for(owner))
    token = user.onboarding_token

    done = container.user_service.complete_onboarding(token, "s3cret-pass", {"allergies": "latex"})

    assert done.status == UserStatus.ACTIVE
    assert done.onboarding_completed is True
    assert done.onboarding_token is None
    assert done.custom_fields == {"allergies": "latex"}
    with pytest.raises(AuthnError):
        container.user_service.complete_onboarding(token, "another-pass")


def test_expired_onboarding_token_is_rejected(container, repos, clock):
    owner = add_user(repos, "owner", Role.OWNER)
    user, _ = _new_user(container, actor_for(owner))

    clock.now = clock.now + timedelta(days=8)

    with pytest.raises(AuthenticationError):
        container.user_service.complete_onboarding(user.onboarding_token, "s3cret-pass")


def test_short_password_is_validation_error(container, repos):
    owner = add_user(repos, "owner", Role.OWNER)
    user, _ = _new_user(container, actor_for(owner))

    with pytest.raises(ValidationError) as exc:
        container.user_service.complete_onboarding(user.onboarding_token, "short")

    assert "password" in exc.value.fields
    assert repos.users.get_by_id(user.id).status == UserStatus.PENDING_ONBOARDING


def test_reissue_replaces_previous_token(container, repos):
    owner = add_user(repos, "owner", Role.OWNER)
    user, _ = _new_user(container, actor_for(owner))
    old_token = user.onboarding_token

    reissued, link = container.user_service.reissue_onboarding(actor_for(owner), user.id)

    assert reissued.onboarding_token != old_token
    assert link.endswith(reissued.onboarding_token)
    with pytest.raises(AuthenticationError):
        container.user_service.complete_onboarding(old_token, "s3cret-pass")


def test_get_user_with_custom_fields_is_audited_as_phi(container, repos):
    owner = add_user(repos, "owner", Role.OWNER)
    user, _ = _new_user(container, actor_for(owner))

    container.user_service.get_user(actor_for(owner), user.id)

    assert repos.audit_logs.actions()[-1] == "user_viewed"


def test_staff_can_only_read_themselves(container, repos):
    nurse = add_user(repos, "nurse", Role.RN)
    other = add_user(repos, "other", Role.CNA)

    assert container.user_service.get_user(actor_for(nurse), nurse.id).id == nurse.id
    with pytest.raises(AuthorizationError):
        container.user_service.get_user(actor_for(nurse), other.id)


def test_self_edit_limited_to_contact_fields(container, repos):
    nurse = add_user(repos, "nurse", Role.RN)

    updated = container.user_service.update_user(actor_for(nurse), nurse.id, {"phoneNumber": "555-0100"})
    assert updated.phone_number == "555-0100"

    with pytest.raises(AuthorizationError):
        container.user_service.update_user(actor_for(nurse), nurse.id, {"defaultHourlyRate": "99"})


def test_custom_fields_merge_and_null_removes(container, repos):
    hr = add_user(repos, "hr", Role.HR)
    nurse = add_user(repos, "nurse", Role.RN)
    container.user_service.update_user(actor_for(hr), nurse.id, {"customFields": {"a": 1, "b": 2}})

    updated = container.user_service.update_user(actor_for(hr), nurse.id, {"customFields": {"a": None, "c": 3}})

    assert updated.custom_fields == {"b": 2, "c": 3}


def test_archive_blocks_login(container, repos):
    hr = add_user(repos, "hr", Role.HR)
    nurse = add_user(repos, "nurse", Role.RN, password_hash=generate_password_hash("nurse12345"))
    assert container.auth_service.authenticate("nurse", "nurse12345").id == nurse.id

    container.user_service.update_user(actor_for(hr), nurse.id, {"status": "archived"})

    with pytest.raises(AuthenticationError):
        container.auth_service.authenticate("nurse", "nurse12345")
    assert container.auth_service.session_user(nurse.id) is None


def test_cannot_return_to_pending(container, repos):
    hr = add_user(repos, "hr", Role.HR)
    nurse = add_user(repos, "nurse", Role.RN)

    with pytest.raises(ValidationError):
        container.user_service.update_user(actor_for(hr), nurse.id, {"status": "pending-onboarding"})


def test_archived_pending_user_cannot_finish_onboarding(container, repos):
    owner = add_user(repos, "owner", Role.OWNER)
    user, _ = _new_user(container, actor_for(owner))
    token = user.onboarding_token

    archived = container.user_service.update_user(actor_for(owner), user.id, {"status": "archived"})

    assert archived.onboarding_token is None
    with pytest.raises(AuthenticationError):
        container.user_service.complete_onboarding(token, "s3cret-pass")
    assert repos.users.get_by_id(user.id).status == UserStatus.ARCHIVED


def test_only_owner_can_demote_or_archive_owner(container, repos):
    hr = add_user(repos, "hr", Role.HR)
    owner = add_user(repos, "owner", Role.OWNER)
    other_owner = add_user(repos, "owner2", Role.OWNER)

    with pytest.raises(AuthorizationError):
        container.user_service.update_user(actor_for(hr), owner.id, {"role": "Staff"})
    with pytest.raises(AuthorizationError):
        container.user_service.update_user(actor_for(hr), owner.id, {"status": "archived"})

    stored = repos.users.get_by_id(owner.id)
    assert stored.role == Role.OWNER
    assert stored.status == UserStatus.ACTIVE
    assert repos.audit_logs.actions() == []

    demoted = container.user_service.update_user(actor_for(other_owner), owner.id, {"role": "Admin"})
    assert demoted.role == Role.ADMIN


def test_failed_login_is_audited(container, repos):
    add_user(repos, "nurse", Role.RN, password_hash=generate_password_hash("nurse12345"))

    with pytest.raises(AuthenticationError):
        container.auth_service.authenticate("nurse", "wrong-password")

    assert repos.audit_logs.actions() == ["login_failed"]
