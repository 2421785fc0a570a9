from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

import mysql.connector

from ..core.enums import TimesheetStatus
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_decimal, db_cursor, fetchall, fetchone, is_duplicate_key, update_by_id
from .model import Timesheet
from .repository import TimesheetRepository


def _row_to_timesheet(row: dict) -> Timesheet:
    return Timesheet(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        period_start=row["period_start"],
        period_end=row["period_end"],
        total_hours=as_decimal(row["total_hours"]),
        regular_hours=as_decimal(row["regular_hours"]),
        overtime_hours=as_decimal(row["overtime_hours"]),
        status=TimesheetStatus(row["status"]),
        approved_by=row.get("approved_by"),
        approved_at=row.get("approved_at"),
        notes=row.get("notes"),
        created_at=row.get("created_at"),
    )


class MySQLTimesheetRepository(TimesheetRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, timesheet_id: int, *, for_update: bool = False) -> Optional[Timesheet]:
        sql = "SELECT * FROM timesheets WHERE id=%s" + (" FOR UPDATE" if for_update else "")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, (timesheet_id,))
            row = fetchone(cur)
            return _row_to_timesheet(row) if row else None

    def get_for_period(
        self, user_id: int, period_start: date, period_end: date, *, for_update: bool = False
    ) -> Optional[Timesheet]:
        sql = "SELECT * FROM timesheets WHERE user_id=%s AND period_start=%s AND period_end=%s"
        if for_update:
            sql += " FOR UPDATE"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, (user_id, period_start, period_end))
            row = fetchone(cur)
            return _row_to_timesheet(row) if row else None

    def list(
        self,
        *,
        user_id: Optional[int] = None,
        status: Optional[TimesheetStatus] = None,
    ) -> Sequence[Timesheet]:
        where: list[str] = []
        params: list[Any] = []
        if user_id is not None:
            where.append("user_id=%s")
            params.append(user_id)
        if status is not None:
            where.append("status=%s")
            params.append(status.value)
        sql = "SELECT * FROM timesheets"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY created_at ASC, id ASC"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_timesheet(r) for r in fetchall(cur)]

    def create(self, timesheet: Timesheet) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            try:
                cur.execute(
                    """
                    INSERT INTO timesheets(user_id, period_start, period_end, total_hours, regular_hours,
                                           overtime_hours, status, notes, created_at)
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        timesheet.user_id,
                        timesheet.period_start,
                        timesheet.period_end,
                        timesheet.total_hours,
                        timesheet.regular_hours,
                        timesheet.overtime_hours,
                        timesheet.status.value,
                        timesheet.notes,
                        timesheet.created_at,
                    ),
                )
            except mysql.connector.IntegrityError as e:
                if is_duplicate_key(e):
                    raise ConflictError("A timesheet for this user and period already exists") from e
                raise
            return int(cur.lastrowid)

    def update(self, timesheet_id: int, changes: Mapping[str, Any]) -> bool:
        cols = {k: (v.value if isinstance(v, Enum) else v) for k, v in changes.items()}
        with db_cursor(self._conn_factory) as (_, cur):
            return update_by_id(cur, "timesheets", timesheet_id, cols)

    def set_status(
        self,
        timesheet_id: int,
        status: TimesheetStatus,
        *,
        expected: TimesheetStatus,
        approved_by: Optional[int] = None,
        approved_at: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> bool:
        sets = ["status=%s"]
        params: list[Any] = [status.value]
        if approved_by is not None or approved_at is not None:
            sets += ["approved_by=%s", "approved_at=%s"]
            params += [approved_by, approved_at]
        if notes is not None:
            sets.append("notes=%s")
            params.append(notes)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE timesheets SET {', '.join(sets)} WHERE id=%s AND status=%s",
                (*params, timesheet_id, expected.value),
            )
            return cur.rowcount == 1
