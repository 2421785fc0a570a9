from __future__ import annotations

from enum import Enum

from .enums import Role
from .exceptions import AuthorizationError


class Action(str, Enum):
    USERS_CREATE = "users:create"
    USERS_UPDATE = "users:update"
    USERS_VIEW_ALL = "users:view_all"

    SCHEDULES_MANAGE = "schedules:manage"
    SHIFTS_MANAGE = "shifts:manage"
    SHIFTS_ASSIGN = "shifts:assign"

    TIME_VIEW_ALL = "time:view_all"
    TIME_EDIT_ANY = "time:edit_any"
    TIME_LOCK = "time:lock"
    TIME_AUTO_CLOCK_OUT = "time:auto_clock_out"

    TIMESHEETS_VIEW_ALL = "timesheets:view_all"
    TIMESHEETS_GENERATE = "timesheets:generate"
    TIMESHEETS_APPROVE = "timesheets:approve"
    TIMESHEETS_EXPORT = "timesheets:export"

    DOCUMENTS_VIEW_ALL = "documents:view_all"
    DOCUMENTS_APPROVE = "documents:approve"

    AUDIT_VIEW = "audit:view"


_ALL = frozenset(Action)

ROLE_PERMISSIONS: dict[Role, frozenset[Action]] = {
    Role.OWNER: _ALL,
    Role.ADMIN: _ALL,
    Role.SCHEDULER: frozenset(
        {
            Action.USERS_VIEW_ALL,
            Action.SCHEDULES_MANAGE,
            Action.SHIFTS_MANAGE,
            Action.SHIFTS_ASSIGN,
        }
    ),
    Role.PAYROLL: frozenset(
        {
            Action.TIME_VIEW_ALL,
            Action.TIME_EDIT_ANY,
            Action.TIME_LOCK,
            Action.TIMESHEETS_VIEW_ALL,
            Action.TIMESHEETS_GENERATE,
            Action.TIMESHEETS_APPROVE,
            Action.TIMESHEETS_EXPORT,
        }
    ),
    Role.HR: frozenset(
        {
            Action.USERS_CREATE,
            Action.USERS_UPDATE,
            Action.USERS_VIEW_ALL,
            Action.DOCUMENTS_VIEW_ALL,
            Action.DOCUMENTS_APPROVE,
        }
    ),
    Role.MANAGER: frozenset(
        {
            Action.USERS_VIEW_ALL,
            Action.SHIFTS_ASSIGN,
            Action.TIME_VIEW_ALL,
            Action.TIME_EDIT_ANY,
            Action.TIMESHEETS_VIEW_ALL,
            Action.TIMESHEETS_APPROVE,
            Action.DOCUMENTS_VIEW_ALL,
        }
    ),
    Role.STAFF: frozenset(),
    Role.CNA: frozenset(),
    Role.LPN: frozenset(),
    Role.RN: frozenset(),
}


def can(role: Role, action: Action) -> bool:
    return action in ROLE_PERMISSIONS.get(role, frozenset())


def require(role: Role, action: Action) -> None:
    """Raise AuthorizationError unless `role` is allowed to perform `action`."""

    if not can(role, action):
        raise AuthorizationError(f"Role {role.value} is not allowed to perform {action.value}")
