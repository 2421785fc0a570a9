from __future__ import annotations

from typing import Optional, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, dump_json, fetchall, load_json
from .model import AuditLog
from .repository import AuditLogRepository


def _row_to_log(row: dict) -> AuditLog:
    return AuditLog(
        id=int(row["id"]),
        user_id=row.get("user_id"),
        action=row["action"],
        resource_type=row["resource_type"],
        resource_id=row.get("resource_id"),
        ip_address=row.get("ip_address"),
        user_agent=row.get("user_agent"),
        phi_accessed=bool(row.get("phi_accessed")),
        phi_fields=load_json(row.get("phi_fields"), []),
        details=load_json(row.get("details"), {}),
        timestamp=row.get("timestamp"),
    )


class MySQLAuditLogRepository(AuditLogRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def append(self, entry: AuditLog) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO audit_logs(user_id, action, resource_type, resource_id, ip_address, user_agent,
                                       phi_accessed, phi_fields, details, timestamp)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    entry.user_id,
                    entry.action,
                    entry.resource_type,
                    entry.resource_id,
                    entry.ip_address,
                    entry.user_agent,
                    int(entry.phi_accessed),
                    dump_json(entry.phi_fields or None),
                    dump_json(entry.details or None),
                    entry.timestamp,
                ),
            )
            return int(cur.lastrowid)

    def list(
        self,
        *,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        limit: int = 100,
    ) -> Sequence[AuditLog]:
        where = []
        params: list = []
        if user_id is not None:
            where.append("user_id=%s")
            params.append(user_id)
        if resource_type:
            where.append("resource_type=%s")
            params.append(resource_type)
        sql = "SELECT * FROM audit_logs"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY timestamp DESC, id DESC LIMIT %s"
        params.append(int(limit))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_row_to_log(r) for r in fetchall(cur)]
