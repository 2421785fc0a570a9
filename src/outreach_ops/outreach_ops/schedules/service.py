from __future__ import annotations

import logging
from typing import Any, Callable, ContextManager, Mapping, Optional, Sequence

from ..audit.service import AuditTrail
from ..common.datetime_utils import utc_now
from ..common.validators import FieldErrors, optional_str, parse_date, require_enum, require_non_empty
from ..core.actor import Actor
from ..core.enums import ScheduleStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..core.permissions import Action, require
from .model import Schedule
from .repository import ScheduleRepository

logger = logging.getLogger(__name__)


def _check_range(start, end) -> None:
    if start and end and start > end:
        raise ValidationError("startDate must not be after endDate", {"endDate": "must be on or after startDate"})


class ScheduleService:
    def __init__(
        self,
        schedules: ScheduleRepository,
        audit: AuditTrail,
        transaction: Callable[[], ContextManager],
        *,
        clock: Callable = utc_now,
    ):
        self._schedules = schedules
        self._audit = audit
        self._tx = transaction
        self._clock = clock

    def get_schedule(self, schedule_id: int) -> Schedule:
        schedule = self._schedules.get_by_id(schedule_id)
        if not schedule:
            raise NotFoundError(f"Schedule {schedule_id} not found")
        return schedule

    def list_schedules(self, *, status: Optional[str] = None) -> Sequence[Schedule]:
        wanted = require_enum(status, ScheduleStatus, "status") if status else None
        return self._schedules.list_all(status=wanted)

    def create_schedule(self, actor: Actor, data: Mapping[str, Any]) -> Schedule:
        require(actor.role, Action.SCHEDULES_MANAGE)

        errors = FieldErrors()
        title = errors.check(require_non_empty, data.get("title"), "title")
        description = errors.check(optional_str, data.get("description"), "description")
        start = errors.check(parse_date, data.get("startDate"), "startDate")
        end = errors.check(parse_date, data.get("endDate"), "endDate")
        status = errors.check(require_enum, data.get("status", ScheduleStatus.ACTIVE.value), ScheduleStatus, "status")
        errors.raise_if_any()
        _check_range(start, end)

        schedule = Schedule(
            id=0,
            title=title,
            description=description,
            start_date=start,
            end_date=end,
            status=status,
            created_by=actor.user_id,
            created_at=self._clock(),
        )
        with self._tx():
            schedule_id = self._schedules.create(schedule)
            self._audit.record(action="schedule_created", resource_type="schedule", resource_id=schedule_id, actor=actor)
        logger.info("Schedule %s created by %s", schedule_id, actor.user_id)
        return self.get_schedule(schedule_id)

    def update_schedule(self, actor: Actor, schedule_id: int, data: Mapping[str, Any]) -> Schedule:
        require(actor.role, Action.SCHEDULES_MANAGE)
        current = self.get_schedule(schedule_id)

        errors = FieldErrors()
        changes: dict[str, Any] = {}
        if "title" in data:
            changes["title"] = errors.check(require_non_empty, data["title"], "title")
        if "description" in data:
            changes["description"] = errors.check(optional_str, data["description"], "description")
        if "startDate" in data:
            changes["start_date"] = errors.check(parse_date, data["startDate"], "startDate")
        if "endDate" in data:
            changes["end_date"] = errors.check(parse_date, data["endDate"], "endDate")
        if "status" in data:
            changes["status"] = errors.check(require_enum, data["status"], ScheduleStatus, "status")
        errors.raise_if_any()
        _check_range(changes.get("start_date", current.start_date), changes.get("end_date", current.end_date))

        with self._tx():
            self._schedules.update(schedule_id, changes)
            self._audit.record(
                action="schedule_updated",
                resource_type="schedule",
                resource_id=schedule_id,
                actor=actor,
                details={"fields": sorted(data)},
            )
        return self.get_schedule(schedule_id)
