from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

import mysql.connector

from ..core.enums import AssignmentStatus
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key, update_by_id
from .model import ShiftAssignment
from .repository import ShiftAssignmentRepository


def _row_to_assignment(row: dict) -> ShiftAssignment:
    return ShiftAssignment(
        id=int(row["id"]),
        shift_id=int(row["shift_id"]),
        user_id=int(row["user_id"]),
        status=AssignmentStatus(row["status"]),
        assigned_at=row["assigned_at"],
        accepted_at=row.get("accepted_at"),
        notes=row.get("notes"),
    )


class MySQLShiftAssignmentRepository(ShiftAssignmentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, assignment_id: int) -> Optional[ShiftAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM shift_assignments WHERE id=%s", (assignment_id,))
            row = fetchone(cur)
            return _row_to_assignment(row) if row else None

    def get_for_shift_user(self, shift_id: int, user_id: int) -> Optional[ShiftAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT * FROM shift_assignments WHERE shift_id=%s AND user_id=%s",
                (shift_id, user_id),
            )
            row = fetchone(cur)
            return _row_to_assignment(row) if row else None

    def list(self, *, shift_id: Optional[int] = None, user_id: Optional[int] = None) -> Sequence[ShiftAssignment]:
        where: list[str] = []
        params: list[Any] = []
        if shift_id is not None:
            where.append("shift_id=%s")
            params.append(shift_id)
        if user_id is not None:
            where.append("user_id=%s")
            params.append(user_id)
        sql = "SELECT * FROM shift_assignments"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY assigned_at ASC, id ASC"
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_assignment(r) for r in fetchall(cur)]

    def count_active(self, shift_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT COUNT(*) AS n FROM shift_assignments WHERE shift_id=%s AND status<>%s",
                (shift_id, AssignmentStatus.REJECTED.value),
            )
            row = fetchone(cur)
            return int(row["n"]) if row else 0

    def create(self, assignment: ShiftAssignment) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            try:
                cur.execute(
                    """
                    INSERT INTO shift_assignments(shift_id, user_id, status, assigned_at, accepted_at, notes)
                    VALUES(%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        assignment.shift_id,
                        assignment.user_id,
                        assignment.status.value,
                        assignment.assigned_at,
                        assignment.accepted_at,
                        assignment.notes,
                    ),
                )
            except mysql.connector.IntegrityError as e:
                if is_duplicate_key(e):
                    raise ConflictError("User is already assigned to this shift") from e
                raise
            return int(cur.lastrowid)

    def update(self, assignment_id: int, changes: Mapping[str, Any]) -> bool:
        cols = {k: (v.value if isinstance(v, Enum) else v) for k, v in changes.items()}
        with db_cursor(self._conn_factory) as (_, cur):
            return update_by_id(cur, "shift_assignments", assignment_id, cols)

    def set_status(
        self,
        assignment_id: int,
        status: AssignmentStatus,
        *,
        expected: AssignmentStatus,
        accepted_at: Optional[datetime] = None,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            if accepted_at is not None:
                cur.execute(
                    "UPDATE shift_assignments SET status=%s, accepted_at=%s WHERE id=%s AND status=%s",
                    (status.value, accepted_at, assignment_id, expected.value),
                )
            else:
                cur.execute(
                    "UPDATE shift_assignments SET status=%s WHERE id=%s AND status=%s",
                    (status.value, assignment_id, expected.value),
                )
            return cur.rowcount == 1
