from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User roles used for authorization (see core.permissions)."""

    OWNER = "Owner"
    ADMIN = "Admin"
    SCHEDULER = "Scheduler"
    PAYROLL = "Payroll"
    HR = "HR"
    MANAGER = "Manager"
    STAFF = "Staff"
    CNA = "CNA"
    LPN = "LPN"
    RN = "RN"


class UserStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    PENDING_ONBOARDING = "pending-onboarding"


class ScheduleStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    DRAFT = "draft"


class ShiftStatus(str, Enum):
    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AssignmentStatus(str, Enum):
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


class TimeEntryStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    AUTO_CLOCKED_OUT = "auto-clocked-out"


class TimesheetStatus(str, Enum):
    """Payroll approval flow: pending -> submitted -> approved|rejected, approved -> exported."""

    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPORTED = "exported"


class DocumentStatus(str, Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    EXPIRING = "expiring"
