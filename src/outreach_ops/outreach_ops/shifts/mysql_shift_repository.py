from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from ..core.enums import ShiftStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, fetchone, load_json, update_by_id
from .model import Shift, ShiftTemplate
from .repository import ShiftRepository, ShiftTemplateRepository


def _to_columns(changes: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in changes.items():
        if isinstance(v, Enum):
            v = v.value
        elif k == "attachments":
            v = dump_json(list(v or []))
        out[k] = v
    return out


def _row_to_template(row: dict) -> ShiftTemplate:
    return ShiftTemplate(
        id=int(row["id"]),
        title=row["title"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        color=row["color"],
        description=row.get("description"),
        created_at=row.get("created_at"),
    )


def _row_to_shift(row: dict) -> Shift:
    return Shift(
        id=int(row["id"]),
        schedule_id=row.get("schedule_id"),
        template_id=row.get("template_id"),
        title=row["title"],
        job_name=row.get("job_name"),
        start_time=row["start_time"],
        end_time=row["end_time"],
        location=row.get("location"),
        notes=row.get("notes"),
        status=ShiftStatus(row["status"]),
        color=row.get("color"),
        max_assignees=int(row["max_assignees"]),
        attachments=load_json(row.get("attachments"), []) or [],
        created_at=row.get("created_at"),
    )


class MySQLShiftTemplateRepository(ShiftTemplateRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, template_id: int) -> Optional[ShiftTemplate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM shift_templates WHERE id=%s", (template_id,))
            row = fetchone(cur)
            return _row_to_template(row) if row else None

    def list_all(self) -> Sequence[ShiftTemplate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM shift_templates ORDER BY created_at ASC, id ASC")
            return [_row_to_template(r) for r in fetchall(cur)]

    def create(self, template: ShiftTemplate) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO shift_templates(title, start_time, end_time, color, description, created_at)
                VALUES(%s,%s,%s,%s,%s,%s)
                """,
                (
                    template.title,
                    template.start_time,
                    template.end_time,
                    template.color,
                    template.description,
                    template.created_at,
                ),
            )
            return int(cur.lastrowid)

    def update(self, template_id: int, changes: Mapping[str, Any]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            return update_by_id(cur, "shift_templates", template_id, _to_columns(changes))

    def delete_if_unused(self, template_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                DELETE FROM shift_templates
                WHERE id=%s AND NOT EXISTS (SELECT 1 FROM shifts WHERE template_id=%s)
                """,
                (template_id, template_id),
            )
            return cur.rowcount > 0


class MySQLShiftRepository(ShiftRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, shift_id: int) -> Optional[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM shifts WHERE id=%s", (shift_id,))
            row = fetchone(cur)
            return _row_to_shift(row) if row else None

    def get_for_update(self, shift_id: int) -> Optional[Shift]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM shifts WHERE id=%s FOR UPDATE", (shift_id,))
            row = fetchone(cur)
            return _row_to_shift(row) if row else None

    def list(
        self,
        *,
        schedule_id: Optional[int] = None,
        starts_from: Optional[datetime] = None,
        starts_before: Optional[datetime] = None,
    ) -> Sequence[Shift]:
        where: list[str] = []
        params: list[Any] = []
        if schedule_id is not None:
            where.append("schedule_id=%s")
            params.append(schedule_id)
        if starts_from is not None:
            where.append("start_time >= %s")
            params.append(starts_from)
        if starts_before is not None:
            where.append("start_time < %s")
            params.append(starts_before)
        sql = "SELECT * FROM shifts"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY created_at ASC, id ASC"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_shift(r) for r in fetchall(cur)]

    def create(self, shift: Shift) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO shifts(schedule_id, template_id, title, job_name, start_time, end_time, location,
                                   notes, status, color, max_assignees, attachments, created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    shift.schedule_id,
                    shift.template_id,
                    shift.title,
                    shift.job_name,
                    shift.start_time,
                    shift.end_time,
                    shift.location,
                    shift.notes,
                    shift.status.value,
                    shift.color,
                    shift.max_assignees,
                    dump_json(list(shift.attachments)),
                    shift.created_at,
                ),
            )
            return int(cur.lastrowid)

    def update(self, shift_id: int, changes: Mapping[str, Any]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            return update_by_id(cur, "shifts", shift_id, _to_columns(changes))

    def set_status(self, shift_id: int, status: ShiftStatus, *, expected: ShiftStatus) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE shifts SET status=%s WHERE id=%s AND status=%s",
                (status.value, shift_id, expected.value),
            )
            return cur.rowcount == 1

    def list_started_assigned(self, now: datetime) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT id FROM shifts WHERE status=%s AND start_time <= %s ORDER BY id",
                (ShiftStatus.ASSIGNED.value, now),
            )
            return [int(r["id"]) for r in fetchall(cur)]

    def delete_if_unreferenced(self, shift_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                DELETE FROM shifts
                WHERE id=%s
                  AND NOT EXISTS (SELECT 1 FROM shift_assignments WHERE shift_id=%s)
                  AND NOT EXISTS (SELECT 1 FROM time_entries WHERE shift_id=%s)
                """,
                (shift_id, shift_id, shift_id),
            )
            return cur.rowcount > 0
