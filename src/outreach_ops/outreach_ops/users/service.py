from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import Any, Callable, ContextManager, Mapping, Optional, Sequence

from werkzeug.security import check_password_hash, generate_password_hash

from ..audit.service import AuditTrail
from ..common.datetime_utils import utc_now
from ..common.validators import (
    FieldErrors,
    optional_str,
    parse_decimal,
    parse_job_rates,
    require_email,
    require_enum,
    require_min_length,
    require_non_empty,
)
from ..core.actor import Actor
from ..core.constants import DEFAULT_HOURLY_RATE, MIN_PASSWORD_LENGTH, ONBOARDING_TOKEN_DAYS
from ..core.enums import Role, UserStatus
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ..core.permissions import Action, require
from .model import User
from .repository import UserRepository

logger = logging.getLogger(__name__)

# Fields a user may change on their own profile without users:update.
SELF_EDITABLE = frozenset({"email", "phoneNumber", "password"})


def _custom_fields(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError("customFields: must be an object", {"customFields": "must be an object"})
    return dict(value)


def _phi_names(fields: Mapping[str, Any]) -> list[str]:
    return [f"customFields.{k}" for k in fields]


class AuthService:
    """Use case: authenticate user (login/logout)."""

    def __init__(
        self,
        users: UserRepository,
        audit: AuditTrail,
        transaction: Callable[[], ContextManager],
    ):
        self._users = users
        self._audit = audit
        self._tx = transaction

    def authenticate(
        self,
        username: str,
        password: str,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> User:
        user = self._users.get_by_username((username or "").strip())
        ok = False
        if user and user.status == UserStatus.ACTIVE and user.password_hash:
            try:
                ok = check_password_hash(user.password_hash, password or "")
            except ValueError:
                # unknown hash method (placeholder or legacy value)
                ok = False

        with self._tx():
            if ok:
                self._audit.record(
                    action="login",
                    resource_type="session",
                    actor=Actor(user.id, user.role, ip_address, user_agent),
                )
            else:
                self._audit.record(
                    action="login_failed",
                    resource_type="session",
                    user_id=user.id if user else None,
                    details={"username": username},
                )

        if not ok:
            logger.warning("Login failed for %r", username)
            raise AuthenticationError("Invalid username or password")
        logger.info("User %s logged in", user.id)
        return user

    def logout(self, actor: Actor) -> None:
        with self._tx():
            self._audit.record(action="logout", resource_type="session", actor=actor)

    def session_user(self, user_id: int) -> Optional[User]:
        """User behind a session cookie, or None once archived/removed."""

        user = self._users.get_by_id(user_id)
        if not user or user.status != UserStatus.ACTIVE:
            return None
        return user


class UserService:
    """Use case: manage users and onboarding."""

    def __init__(
        self,
        users: UserRepository,
        audit: AuditTrail,
        transaction: Callable[[], ContextManager],
        *,
        clock: Callable = utc_now,
        onboarding_token_days: int = ONBOARDING_TOKEN_DAYS,
        onboarding_base_url: str = "http://localhost:5000",
    ):
        self._users = users
        self._audit = audit
        self._tx = transaction
        self._clock = clock
        self._token_days = int(onboarding_token_days)
        self._base_url = onboarding_base_url.rstrip("/")

    def onboarding_link(self, token: str) -> str:
        return f"{self._base_url}/onboarding?token={token}"

    def _get(self, user_id: int) -> User:
        user = self._users.get_by_id(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def _check_role_grant(self, actor: Actor, role: Role) -> None:
        if role == Role.OWNER and actor.role != Role.OWNER:
            raise AuthorizationError("Only an Owner can grant the Owner role")

    def _new_token(self):
        return secrets.token_urlsafe(32), self._clock() + timedelta(days=self._token_days)

    def create_user(self, actor: Actor, data: Mapping[str, Any]) -> tuple[User, str]:
        require(actor.role, Action.USERS_CREATE)

        errors = FieldErrors()
        username = errors.check(require_non_empty, data.get("username"), "username")
        email = errors.check(require_email, data.get("email"), "email")
        full_name = errors.check(require_non_empty, data.get("fullName"), "fullName")
        phone = errors.check(optional_str, data.get("phoneNumber"), "phoneNumber")
        role = errors.check(require_enum, data.get("role", Role.STAFF.value), Role, "role")
        rate = errors.check(
            parse_decimal, data.get("defaultHourlyRate", DEFAULT_HOURLY_RATE), "defaultHourlyRate"
        )
        job_rates = errors.check(parse_job_rates, data.get("jobRates"), "jobRates")
        custom = errors.check(_custom_fields, data.get("customFields"))
        errors.raise_if_any()

        self._check_role_grant(actor, role)
        if self._users.get_by_username(username):
            raise ConflictError("Username already exists")
        if self._users.get_by_email(email):
            raise ConflictError("Email already exists")

        token, expiry = self._new_token()
        user = User(
            id=0,
            username=username,
            email=email,
            full_name=full_name,
            phone_number=phone,
            role=role,
            status=UserStatus.PENDING_ONBOARDING,
            default_hourly_rate=rate,
            job_rates=job_rates,
            custom_fields=custom,
            onboarding_token=token,
            onboarding_token_expiry=expiry,
            created_at=self._clock(),
        )
        with self._tx():
            user_id = self._users.create_user(user)
            self._audit.record(
                action="user_created",
                resource_type="user",
                resource_id=user_id,
                actor=actor,
                phi_fields=_phi_names(custom),
                details={"role": role.value},
            )
        logger.info("User %s created by %s (role=%s)", user_id, actor.user_id, role.value)
        return self._get(user_id), self.onboarding_link(token)

    def reissue_onboarding(self, actor: Actor, user_id: int) -> tuple[User, str]:
        """New link for a user still pending onboarding (the previous token stops working)."""

        require(actor.role, Action.USERS_CREATE)
        user = self._get(user_id)
        if user.status != UserStatus.PENDING_ONBOARDING:
            raise ConflictError("User has already completed onboarding")
        token, expiry = self._new_token()
        with self._tx():
            self._users.update_user(user_id, {"onboarding_token": token, "onboarding_token_expiry": expiry})
            self._audit.record(action="onboarding_reissued", resource_type="user", resource_id=user_id, actor=actor)
        return self._get(user_id), self.onboarding_link(token)

    def complete_onboarding(
        self,
        token: Any,
        password: Any,
        custom_fields: Any = None,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> User:
        if not isinstance(token, str) or not token.strip():
            raise AuthenticationError("Invalid or expired onboarding token")
        errors = FieldErrors()
        errors.check(require_min_length, password, "password", MIN_PASSWORD_LENGTH)
        custom = errors.check(_custom_fields, custom_fields)
        errors.raise_if_any()

        with self._tx():
            user_id = self._users.consume_onboarding_token(
                token.strip(),
                now=self._clock(),
                password_hash=generate_password_hash(password),
                custom_fields=custom if custom_fields is not None else None,
            )
            if user_id is None:
                logger.warning("Rejected onboarding token (unknown, expired or used)")
                raise AuthenticationError("Invalid or expired onboarding token")
            user = self._get(user_id)
            self._audit.record(
                action="onboarding_completed",
                resource_type="user",
                resource_id=user_id,
                actor=Actor(user.id, user.role, ip_address, user_agent),
                phi_fields=_phi_names(custom) if custom_fields is not None else (),
            )
        logger.info("User %s completed onboarding", user_id)
        return user

    def get_user(self, actor: Actor, user_id: int) -> User:
        if actor.user_id != user_id:
            require(actor.role, Action.USERS_VIEW_ALL)
        user = self._get(user_id)
        if user.custom_fields:
            with self._tx():
                self._audit.record(
                    action="user_viewed",
                    resource_type="user",
                    resource_id=user_id,
                    actor=actor,
                    phi_fields=_phi_names(user.custom_fields),
                )
        return user

    def list_users(self, actor: Actor, *, status: Optional[str] = None, role: Optional[str] = None) -> Sequence[User]:
        require(actor.role, Action.USERS_VIEW_ALL)
        users = list(self._users.list_all())
        if status:
            wanted = require_enum(status, UserStatus, "status")
            users = [u for u in users if u.status == wanted]
        if role:
            wanted_role = require_enum(role, Role, "role")
            users = [u for u in users if u.role == wanted_role]
        return users

    def update_user(self, actor: Actor, user_id: int, data: Mapping[str, Any]) -> User:
        is_self = actor.user_id == user_id
        if not (is_self and set(data) <= SELF_EDITABLE):
            require(actor.role, Action.USERS_UPDATE)
        user = self._get(user_id)

        errors = FieldErrors()
        changes: dict[str, Any] = {}
        if "email" in data:
            changes["email"] = errors.check(require_email, data["email"], "email")
        if "fullName" in data:
            changes["full_name"] = errors.check(require_non_empty, data["fullName"], "fullName")
        if "phoneNumber" in data:
            changes["phone_number"] = errors.check(optional_str, data["phoneNumber"], "phoneNumber")
        if "role" in data:
            changes["role"] = errors.check(require_enum, data["role"], Role, "role")
        if "status" in data:
            status = errors.check(require_enum, data["status"], UserStatus, "status")
            if status == UserStatus.PENDING_ONBOARDING and user.status != UserStatus.PENDING_ONBOARDING:
                errors.add("status", "cannot return to pending-onboarding")
            changes["status"] = status
            if status is not None and status != UserStatus.PENDING_ONBOARDING:
                # An unused onboarding link dies with the pending status.
                changes.update(onboarding_token=None, onboarding_token_expiry=None)
        if "defaultHourlyRate" in data:
            changes["default_hourly_rate"] = errors.check(parse_decimal, data["defaultHourlyRate"], "defaultHourlyRate")
        if "jobRates" in data:
            changes["job_rates"] = errors.check(parse_job_rates, data["jobRates"], "jobRates")
        if "customFields" in data:
            # Merge; a null value removes the key.
            incoming = errors.check(_custom_fields, data["customFields"]) or {}
            merged = dict(user.custom_fields)
            for k, v in incoming.items():
                if v is None:
                    merged.pop(k, None)
                else:
                    merged[k] = v
            changes["custom_fields"] = merged
        if "password" in data:
            pw = errors.check(require_min_length, data["password"], "password", MIN_PASSWORD_LENGTH)
            if pw is not None:
                changes["password_hash"] = generate_password_hash(pw)
        errors.raise_if_any()

        if user.role == Role.OWNER and actor.role != Role.OWNER and ("role" in changes or "status" in changes):
            raise AuthorizationError("Only an Owner can change another Owner's role or status")
        if "role" in changes:
            self._check_role_grant(actor, changes["role"])
            if is_self and changes["role"] != user.role:
                raise AuthorizationError("You cannot change your own role")
        if "email" in changes and changes["email"] != user.email:
            other = self._users.get_by_email(changes["email"])
            if other and other.id != user_id:
                raise ConflictError("Email already exists")

        phi = _phi_names(data.get("customFields") or {}) if "customFields" in data else []
        with self._tx():
            self._users.update_user(user_id, changes)
            self._audit.record(
                action="user_updated",
                resource_type="user",
                resource_id=user_id,
                actor=actor,
                phi_fields=phi,
                details={"fields": sorted(k for k in data if k != "password")},
            )
        if "status" in changes and changes["status"] != user.status:
            logger.info("User %s status %s -> %s", user_id, user.status.value, changes["status"].value)
        return self._get(user_id)
