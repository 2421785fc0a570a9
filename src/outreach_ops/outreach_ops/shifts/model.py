from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..core.enums import AssignmentStatus, ShiftStatus


@dataclass(frozen=True)
class ShiftTemplate:
    """Reusable time-of-day pair plus display color; not tied to a schedule."""

    id: int
    title: str
    start_time: str
    end_time: str
    color: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Shift:
    id: int
    title: str
    start_time: datetime
    end_time: datetime
    status: ShiftStatus
    max_assignees: int = 1
    schedule_id: Optional[int] = None
    template_id: Optional[int] = None
    job_name: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    color: Optional[str] = None
    attachments: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ShiftAssignment:
    id: int
    shift_id: int
    user_id: int
    status: AssignmentStatus
    assigned_at: datetime
    accepted_at: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status != AssignmentStatus.REJECTED
