from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..core.enums import AssignmentStatus, ShiftStatus
from .model import Shift, ShiftAssignment, ShiftTemplate


class ShiftTemplateRepository(Protocol):
    def get_by_id(self, template_id: int) -> Optional[ShiftTemplate]:
        raise NotImplementedError

    def list_all(self) -> Sequence[ShiftTemplate]:
        raise NotImplementedError

    def create(self, template: ShiftTemplate) -> int:
        raise NotImplementedError

    def update(self, template_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def delete_if_unused(self, template_id: int) -> bool:
        """Delete unless a shift references the template."""
        raise NotImplementedError


class ShiftRepository(Protocol):
    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        raise NotImplementedError

    def get_for_update(self, shift_id: int) -> Optional[Shift]:
        """Read and row-lock the shift until the enclosing transaction ends."""
        raise NotImplementedError

    def list(
        self,
        *,
        schedule_id: Optional[int] = None,
        starts_from: Optional[datetime] = None,
        starts_before: Optional[datetime] = None,
    ) -> Sequence[Shift]:
        raise NotImplementedError

    def create(self, shift: Shift) -> int:
        raise NotImplementedError

    def update(self, shift_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def set_status(self, shift_id: int, status: ShiftStatus, *, expected: ShiftStatus) -> bool:
        """Guarded status write: only applies while the stored status is `expected`."""
        raise NotImplementedError

    def list_started_assigned(self, now: datetime) -> Sequence[int]:
        raise NotImplementedError

    def delete_if_unreferenced(self, shift_id: int) -> bool:
        """Delete unless the shift has assignments or time entries."""
        raise NotImplementedError


class ShiftAssignmentRepository(Protocol):
    def get_by_id(self, assignment_id: int) -> Optional[ShiftAssignment]:
        raise NotImplementedError

    def get_for_shift_user(self, shift_id: int, user_id: int) -> Optional[ShiftAssignment]:
        raise NotImplementedError

    def list(self, *, shift_id: Optional[int] = None, user_id: Optional[int] = None) -> Sequence[ShiftAssignment]:
        raise NotImplementedError

    def count_active(self, shift_id: int) -> int:
        """Assignments on the shift that are not rejected."""
        raise NotImplementedError

    def create(self, assignment: ShiftAssignment) -> int:
        raise NotImplementedError

    def update(self, assignment_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def set_status(
        self,
        assignment_id: int,
        status: AssignmentStatus,
        *,
        expected: AssignmentStatus,
        accepted_at: Optional[datetime] = None,
    ) -> bool:
        raise NotImplementedError
