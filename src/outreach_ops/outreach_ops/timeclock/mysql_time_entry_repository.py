from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence

import mysql.connector

from ..core.enums import TimeEntryStatus
from ..core.exceptions import AlreadyClockedInError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import (
    as_decimal,
    db_cursor,
    dump_json,
    fetchall,
    fetchone,
    is_duplicate_key,
    load_json,
    placeholders,
    update_by_id,
)
from .model import TimeEntry
from .repository import TimeEntryRepository

_COLUMNS = (
    "id, user_id, shift_id, clock_in, clock_out, break_minutes, job_name, hourly_rate, location, notes, "
    "status, locked, relieving_nurse_signature, shift_note_attachments, employee_notes, manager_notes, created_at"
)


def _to_columns(changes: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in changes.items():
        if isinstance(v, Enum):
            v = v.value
        elif k == "shift_note_attachments":
            v = dump_json(list(v or []))
        elif k == "locked":
            v = int(bool(v))
        out[k] = v
    return out


def _row_to_entry(row: dict) -> TimeEntry:
    return TimeEntry(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        shift_id=row.get("shift_id"),
        clock_in=row["clock_in"],
        clock_out=row.get("clock_out"),
        break_minutes=int(row.get("break_minutes") or 0),
        job_name=row.get("job_name"),
        hourly_rate=as_decimal(row.get("hourly_rate")),
        location=row.get("location"),
        notes=row.get("notes"),
        status=TimeEntryStatus(row["status"]),
        locked=bool(row.get("locked")),
        relieving_nurse_signature=row.get("relieving_nurse_signature"),
        shift_note_attachments=load_json(row.get("shift_note_attachments"), []) or [],
        employee_notes=row.get("employee_notes"),
        manager_notes=row.get("manager_notes"),
        created_at=row.get("created_at"),
    )


class MySQLTimeEntryRepository(TimeEntryRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, entry_id: int, *, for_update: bool = False) -> Optional[TimeEntry]:
        sql = f"SELECT {_COLUMNS} FROM time_entries WHERE id=%s" + (" FOR UPDATE" if for_update else "")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, (entry_id,))
            row = fetchone(cur)
            return _row_to_entry(row) if row else None

    def get_active_for_user(self, user_id: int, *, for_update: bool = False) -> Optional[TimeEntry]:
        sql = f"SELECT {_COLUMNS} FROM time_entries WHERE active_user_id=%s" + (" FOR UPDATE" if for_update else "")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, (user_id,))
            row = fetchone(cur)
            return _row_to_entry(row) if row else None

    def list(
        self,
        *,
        user_id: Optional[int] = None,
        clock_in_from: Optional[datetime] = None,
        clock_in_before: Optional[datetime] = None,
        statuses: Optional[Iterable[TimeEntryStatus]] = None,
    ) -> Sequence[TimeEntry]:
        where: list[str] = []
        params: list[Any] = []
        if user_id is not None:
            where.append("user_id=%s")
            params.append(user_id)
        if clock_in_from is not None:
            where.append("clock_in >= %s")
            params.append(clock_in_from)
        if clock_in_before is not None:
            where.append("clock_in < %s")
            params.append(clock_in_before)
        if statuses is not None:
            values = [s.value for s in statuses]
            if not values:
                return []
            where.append(f"status IN ({placeholders(values)})")
            params.extend(values)
        sql = f"SELECT {_COLUMNS} FROM time_entries"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY clock_in ASC, id ASC"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_entry(r) for r in fetchall(cur)]

    def create(self, entry: TimeEntry) -> int:
        cols = _to_columns(
            {
                "user_id": entry.user_id,
                "shift_id": entry.shift_id,
                "clock_in": entry.clock_in,
                "break_minutes": entry.break_minutes,
                "job_name": entry.job_name,
                "hourly_rate": entry.hourly_rate,
                "location": entry.location,
                "notes": entry.notes,
                "status": entry.status,
                "locked": entry.locked,
                "shift_note_attachments": entry.shift_note_attachments,
                "created_at": entry.created_at,
            }
        )
        with db_cursor(self._conn_factory) as (_, cur):
            try:
                cur.execute(
                    f"INSERT INTO time_entries({', '.join(cols)}) VALUES({placeholders(cols)})",
                    tuple(cols.values()),
                )
            except mysql.connector.IntegrityError as e:
                if is_duplicate_key(e):
                    raise AlreadyClockedInError("You are already clocked in") from e
                raise
            return int(cur.lastrowid)

    def update(self, entry_id: int, changes: Mapping[str, Any]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            return update_by_id(cur, "time_entries", entry_id, _to_columns(changes))

    def close(
        self,
        entry_id: int,
        *,
        clock_out: datetime,
        status: TimeEntryStatus,
        changes: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        cols = _to_columns({**(changes or {}), "clock_out": clock_out, "status": status})
        sets = ", ".join(f"{c}=%s" for c in cols)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE time_entries SET {sets} WHERE id=%s AND status=%s AND locked=0",
                (*cols.values(), entry_id, TimeEntryStatus.ACTIVE.value),
            )
            return cur.rowcount == 1

    def set_locked(self, entry_ids: Sequence[int], locked: bool) -> int:
        if not entry_ids:
            return 0
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE time_entries SET locked=%s WHERE id IN ({placeholders(entry_ids)})",
                (int(locked), *entry_ids),
            )
            return cur.rowcount
