from __future__ import annotations

import logging
from typing import Any, Callable, ContextManager, Mapping, Optional, Sequence

from ..audit.service import AuditTrail
from ..common.datetime_utils import utc_now
from ..common.validators import (
    FieldErrors,
    optional_datetime,
    optional_str,
    parse_color,
    parse_datetime,
    parse_int,
    parse_string_list,
    parse_time_of_day,
    require_enum,
    require_non_empty,
)
from ..core.actor import Actor
from ..core.constants import DEFAULT_TEMPLATE_COLOR
from ..core.enums import ShiftStatus
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..core.permissions import Action, require
from ..schedules.repository import ScheduleRepository
from .model import Shift, ShiftTemplate
from .repository import ShiftAssignmentRepository, ShiftRepository, ShiftTemplateRepository
from .state_machine import (
    TERMINAL,
    USER_REQUESTABLE,
    check_shift_transition,
    effective_shift_status,
    with_effective_status,
)

logger = logging.getLogger(__name__)


class ShiftTemplateService:
    def __init__(
        self,
        templates: ShiftTemplateRepository,
        audit: AuditTrail,
        transaction: Callable[[], ContextManager],
        *,
        clock: Callable = utc_now,
    ):
        self._templates = templates
        self._audit = audit
        self._tx = transaction
        self._clock = clock

    def get_template(self, template_id: int) -> ShiftTemplate:
        template = self._templates.get_by_id(template_id)
        if not template:
            raise NotFoundError(f"Shift template {template_id} not found")
        return template

    def list_templates(self) -> Sequence[ShiftTemplate]:
        return self._templates.list_all()

    def create_template(self, actor: Actor, data: Mapping[str, Any]) -> ShiftTemplate:
        require(actor.role, Action.SHIFTS_MANAGE)
        errors = FieldErrors()
        title = errors.check(require_non_empty, data.get("title"), "title")
        start = errors.check(parse_time_of_day, data.get("startTime"), "startTime")
        end = errors.check(parse_time_of_day, data.get("endTime"), "endTime")
        color = errors.check(parse_color, data.get("color") or DEFAULT_TEMPLATE_COLOR, "color")
        description = errors.check(optional_str, data.get("description"), "description")
        errors.raise_if_any()

        template = ShiftTemplate(
            id=0,
            title=title,
            start_time=start,
            end_time=end,
            color=color,
            description=description,
            created_at=self._clock(),
        )
        with self._tx():
            template_id = self._templates.create(template)
            self._audit.record(
                action="shift_template_created", resource_type="shift_template", resource_id=template_id, actor=actor
            )
        return self.get_template(template_id)

    def update_template(self, actor: Actor, template_id: int, data: Mapping[str, Any]) -> ShiftTemplate:
        require(actor.role, Action.SHIFTS_MANAGE)
        self.get_template(template_id)
        errors = FieldErrors()
        changes: dict[str, Any] = {}
        if "title" in data:
            changes["title"] = errors.check(require_non_empty, data["title"], "title")
        if "startTime" in data:
            changes["start_time"] = errors.check(parse_time_of_day, data["startTime"], "startTime")
        if "endTime" in data:
            changes["end_time"] = errors.check(parse_time_of_day, data["endTime"], "endTime")
        if "color" in data:
            changes["color"] = errors.check(parse_color, data["color"], "color")
        if "description" in data:
            changes["description"] = errors.check(optional_str, data["description"], "description")
        errors.raise_if_any()
        with self._tx():
            self._templates.update(template_id, changes)
            self._audit.record(
                action="shift_template_updated", resource_type="shift_template", resource_id=template_id, actor=actor
            )
        return self.get_template(template_id)

    def delete_template(self, actor: Actor, template_id: int) -> None:
        require(actor.role, Action.SHIFTS_MANAGE)
        self.get_template(template_id)
        with self._tx():
            if not self._templates.delete_if_unused(template_id):
                raise ConflictError("Shift template is used by existing shifts")
            self._audit.record(
                action="shift_template_deleted", resource_type="shift_template", resource_id=template_id, actor=actor
            )


class ShiftService:
    """Use cases: shift CRUD and user-driven status changes.

    Reads return the effective status (an assigned shift that has started reads
    as in-progress); writes check transitions against that same status.
    """

    def __init__(
        self,
        shifts: ShiftRepository,
        templates: ShiftTemplateRepository,
        schedules: ScheduleRepository,
        assignments: ShiftAssignmentRepository,
        audit: AuditTrail,
        transaction: Callable[[], ContextManager],
        *,
        clock: Callable = utc_now,
    ):
        self._shifts = shifts
        self._templates = templates
        self._schedules = schedules
        self._assignments = assignments
        self._audit = audit
        self._tx = transaction
        self._clock = clock

    def _get_stored(self, shift_id: int, *, for_update: bool = False) -> Shift:
        shift = self._shifts.get_for_update(shift_id) if for_update else self._shifts.get_by_id(shift_id)
        if not shift:
            raise NotFoundError(f"Shift {shift_id} not found")
        return shift

    def get_shift(self, shift_id: int) -> Shift:
        return with_effective_status(self._get_stored(shift_id), self._clock())

    def list_shifts(
        self,
        *,
        schedule_id: Any = None,
        status: Optional[str] = None,
        starts_from: Any = None,
        starts_before: Any = None,
    ) -> Sequence[Shift]:
        errors = FieldErrors()
        sid = errors.check(parse_int, schedule_id, "scheduleId", min_value=1) if schedule_id is not None else None
        wanted = errors.check(require_enum, status, ShiftStatus, "status") if status else None
        start = errors.check(optional_datetime, starts_from, "from")
        end = errors.check(optional_datetime, starts_before, "to")
        errors.raise_if_any()

        now = self._clock()
        shifts = [
            with_effective_status(s, now)
            for s in self._shifts.list(schedule_id=sid, starts_from=start, starts_before=end)
        ]
        if wanted:
            shifts = [s for s in shifts if s.status == wanted]
        return shifts

    def _check_refs(self, errors: FieldErrors, schedule_id: Optional[int], template_id: Optional[int]):
        template = None
        if schedule_id is not None and not self._schedules.get_by_id(schedule_id):
            errors.add("scheduleId", "schedule not found")
        if template_id is not None:
            template = self._templates.get_by_id(template_id)
            if not template:
                errors.add("templateId", "shift template not found")
        return template

    def create_shift(self, actor: Actor, data: Mapping[str, Any]) -> Shift:
        require(actor.role, Action.SHIFTS_MANAGE)

        errors = FieldErrors()
        title = errors.check(require_non_empty, data.get("title"), "title")
        start = errors.check(parse_datetime, data.get("startTime"), "startTime")
        end = errors.check(parse_datetime, data.get("endTime"), "endTime")
        max_assignees = errors.check(parse_int, data.get("maxAssignees", 1), "maxAssignees", min_value=1)
        schedule_id = (
            errors.check(parse_int, data["scheduleId"], "scheduleId", min_value=1)
            if data.get("scheduleId") is not None
            else None
        )
        template_id = (
            errors.check(parse_int, data["templateId"], "templateId", min_value=1)
            if data.get("templateId") is not None
            else None
        )
        job_name = errors.check(optional_str, data.get("jobName"), "jobName")
        location = errors.check(optional_str, data.get("location"), "location")
        notes = errors.check(optional_str, data.get("notes"), "notes")
        color = errors.check(parse_color, data["color"], "color") if data.get("color") else None
        attachments = errors.check(parse_string_list, data.get("attachments"), "attachments")
        if start and end and start >= end:
            errors.add("endTime", "must be after startTime")
        template = self._check_refs(errors, schedule_id, template_id)
        errors.raise_if_any()

        shift = Shift(
            id=0,
            schedule_id=schedule_id,
            template_id=template_id,
            title=title,
            job_name=job_name,
            start_time=start,
            end_time=end,
            location=location,
            notes=notes,
            status=ShiftStatus.OPEN,
            color=color or (template.color if template else None),
            max_assignees=max_assignees,
            attachments=attachments or [],
            created_at=self._clock(),
        )
        with self._tx():
            shift_id = self._shifts.create(shift)
            self._audit.record(action="shift_created", resource_type="shift", resource_id=shift_id, actor=actor)
        logger.info("Shift %s created by %s", shift_id, actor.user_id)
        return self.get_shift(shift_id)

    def update_shift(self, actor: Actor, shift_id: int, data: Mapping[str, Any]) -> Shift:
        require(actor.role, Action.SHIFTS_MANAGE)
        if "status" in data:
            raise ValidationError("Use the status endpoint to change a shift's status", {"status": "not editable here"})

        with self._tx():
            current = self._get_stored(shift_id, for_update=True)
            if current.status in TERMINAL:
                raise ConflictError(f"Shift is {current.status.value} and can no longer be edited")

            errors = FieldErrors()
            changes: dict[str, Any] = {}
            if "title" in data:
                changes["title"] = errors.check(require_non_empty, data["title"], "title")
            if "startTime" in data:
                changes["start_time"] = errors.check(parse_datetime, data["startTime"], "startTime")
            if "endTime" in data:
                changes["end_time"] = errors.check(parse_datetime, data["endTime"], "endTime")
            if "maxAssignees" in data:
                changes["max_assignees"] = errors.check(parse_int, data["maxAssignees"], "maxAssignees", min_value=1)
            for key, attr in (("jobName", "job_name"), ("location", "location"), ("notes", "notes")):
                if key in data:
                    changes[attr] = errors.check(optional_str, data[key], key)
            if "color" in data:
                changes["color"] = errors.check(parse_color, data["color"], "color") if data["color"] else None
            if "attachments" in data:
                changes["attachments"] = errors.check(parse_string_list, data["attachments"], "attachments")
            if "scheduleId" in data:
                changes["schedule_id"] = (
                    errors.check(parse_int, data["scheduleId"], "scheduleId", min_value=1)
                    if data["scheduleId"] is not None
                    else None
                )
            if "templateId" in data:
                changes["template_id"] = (
                    errors.check(parse_int, data["templateId"], "templateId", min_value=1)
                    if data["templateId"] is not None
                    else None
                )
            start = changes.get("start_time") or current.start_time
            end = changes.get("end_time") or current.end_time
            if start >= end:
                errors.add("endTime", "must be after startTime")
            self._check_refs(errors, changes.get("schedule_id"), changes.get("template_id"))
            errors.raise_if_any()

            if "max_assignees" in changes:
                active = self._assignments.count_active(shift_id)
                if changes["max_assignees"] < active:
                    raise ConflictError(
                        f"maxAssignees cannot be lower than the {active} active assignment(s)"
                    )

            self._shifts.update(shift_id, changes)
            self._audit.record(
                action="shift_updated",
                resource_type="shift",
                resource_id=shift_id,
                actor=actor,
                details={"fields": sorted(data)},
            )
        return self.get_shift(shift_id)

    def change_status(self, actor: Actor, shift_id: int, status: Any) -> Shift:
        require(actor.role, Action.SHIFTS_MANAGE)
        target = require_enum(status, ShiftStatus, "status")

        with self._tx():
            stored = self._get_stored(shift_id, for_update=True)
            current = effective_shift_status(stored, self._clock())
            check_shift_transition(current, target)
            if target not in USER_REQUESTABLE:
                raise ValidationError(
                    "open and assigned follow the shift's assignments",
                    {"status": "must be one of: in-progress, completed, cancelled"},
                )
            if current != stored.status:
                # stored assigned -> in-progress catches up first
                self._shifts.set_status(shift_id, current, expected=stored.status)
            if not self._shifts.set_status(shift_id, target, expected=current):
                raise ConflictError("Shift status changed concurrently; retry")
            self._audit.record(
                action="shift_status_changed",
                resource_type="shift",
                resource_id=shift_id,
                actor=actor,
                details={"from": current.value, "to": target.value},
            )
        logger.info("Shift %s status %s -> %s", shift_id, current.value, target.value)
        return self.get_shift(shift_id)

    def sync_started_shifts(self, actor: Optional[Actor] = None) -> list[int]:
        """Persist in-progress for assigned shifts whose start time has passed."""

        if actor is not None:
            require(actor.role, Action.SHIFTS_MANAGE)
        now = self._clock()
        moved: list[int] = []
        with self._tx():
            for shift_id in self._shifts.list_started_assigned(now):
                if self._shifts.set_status(shift_id, ShiftStatus.IN_PROGRESS, expected=ShiftStatus.ASSIGNED):
                    moved.append(shift_id)
            if moved:
                self._audit.record(
                    action="shifts_started",
                    resource_type="shift",
                    actor=actor,
                    details={"shiftIds": moved},
                )
        if moved:
            logger.info("Marked %s shift(s) in-progress: %s", len(moved), moved)
        return moved

    def delete_shift(self, actor: Actor, shift_id: int) -> None:
        require(actor.role, Action.SHIFTS_MANAGE)
        self._get_stored(shift_id)
        with self._tx():
            if not self._shifts.delete_if_unreferenced(shift_id):
                raise ConflictError("Shift has assignments or time entries; cancel it instead")
            self._audit.record(action="shift_deleted", resource_type="shift", resource_id=shift_id, actor=actor)
        logger.info("Shift %s deleted by %s", shift_id, actor.user_id)
