from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from ..core.enums import ScheduleStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, update_by_id
from .model import Schedule
from .repository import ScheduleRepository


def _row_to_schedule(row: dict) -> Schedule:
    return Schedule(
        id=int(row["id"]),
        title=row["title"],
        description=row.get("description"),
        start_date=row["start_date"],
        end_date=row["end_date"],
        status=ScheduleStatus(row["status"]),
        created_by=int(row["created_by"]),
        created_at=row.get("created_at"),
    )


class MySQLScheduleRepository(ScheduleRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, schedule_id: int) -> Optional[Schedule]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM schedules WHERE id=%s", (schedule_id,))
            row = fetchone(cur)
            return _row_to_schedule(row) if row else None

    def list_all(self, *, status: Optional[ScheduleStatus] = None) -> Sequence[Schedule]:
        with db_cursor(self._conn_factory) as (_, cur):
            if status:
                cur.execute(
                    "SELECT * FROM schedules WHERE status=%s ORDER BY created_at ASC, id ASC", (status.value,)
                )
            else:
                cur.execute("SELECT * FROM schedules ORDER BY created_at ASC, id ASC")
            return [_row_to_schedule(r) for r in fetchall(cur)]

    def create(self, schedule: Schedule) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO schedules(title, description, start_date, end_date, status, created_by, created_at)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    schedule.title,
                    schedule.description,
                    schedule.start_date,
                    schedule.end_date,
                    schedule.status.value,
                    schedule.created_by,
                    schedule.created_at,
                ),
            )
            return int(cur.lastrowid)

    def update(self, schedule_id: int, changes: Mapping[str, Any]) -> bool:
        cols = {k: (v.value if isinstance(v, ScheduleStatus) else v) for k, v in changes.items()}
        with db_cursor(self._conn_factory) as (_, cur):
            return update_by_id(cur, "schedules", schedule_id, cols)
