from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from ..core.enums import ScheduleStatus
from .model import Schedule


class ScheduleRepository(Protocol):
    def get_by_id(self, schedule_id: int) -> Optional[Schedule]:
        raise NotImplementedError

    def list_all(self, *, status: Optional[ScheduleStatus] = None) -> Sequence[Schedule]:
        raise NotImplementedError

    def create(self, schedule: Schedule) -> int:
        raise NotImplementedError

    def update(self, schedule_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError
