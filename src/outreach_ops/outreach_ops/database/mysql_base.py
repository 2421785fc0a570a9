from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    """Yield (conn, cursor).

    Inside conn_factory.transaction() the bound connection is used and the
    enclosing transaction decides commit/rollback; otherwise the call is its
    own short transaction.
    """

    bound = conn_factory.current()
    if bound is not None:
        cur = bound.cursor(dictionary=dictionary)
        try:
            yield bound, cur
        finally:
            cur.close()
        return

    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def is_duplicate_key(exc: BaseException) -> bool:
    return isinstance(exc, mysql.connector.IntegrityError) and getattr(exc, "errno", None) == errorcode.ER_DUP_ENTRY


def dump_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str, sort_keys=True)


def load_json(value: Any, default: Any = None) -> Any:
    """JSON columns come back as str, bytes or already-decoded values depending on the connector."""

    if value is None or value == "":
        return default
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        return json.loads(value)
    return value


def as_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def as_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def placeholders(values) -> str:
    return ",".join(["%s"] * len(values))


def update_by_id(cur, table: str, row_id: int, changes: dict[str, Any]) -> bool:
    """UPDATE table SET col=%s, ... WHERE id=%s. Returns whether the row exists."""

    if changes:
        sets = ", ".join(f"{col}=%s" for col in changes)
        cur.execute(f"UPDATE {table} SET {sets} WHERE id=%s", (*changes.values(), row_id))
        if cur.rowcount > 0:
            return True
    # rowcount is 0 both for a missing row and for unchanged values
    cur.execute(f"SELECT 1 FROM {table} WHERE id=%s", (row_id,))
    return fetchone(cur) is not None
