from __future__ import annotations

import logging
import re
from decimal import Decimal
from pathlib import Path
from typing import Iterable

import mysql.connector
from werkzeug.security import generate_password_hash

from ..common.datetime_utils import utc_now
from ..core.enums import Role, UserStatus
from .connection import DBConfig

logger = logging.getLogger(__name__)


def _connect(target: DBConfig, *, with_database: bool = True):
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # Keep schema.sql compatible regardless of DB name.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_comments(sql: str) -> str:
    return re.sub(r"(?m)^\s*--.*$", "", sql)


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a script on ';' outside of quotes (trigger bodies are single statements)."""

    buf: list[str] = []
    in_single = False
    in_double = False
    escape = False

    for ch in _strip_comments(sql):
        if escape:
            buf.append(ch)
            escape = False
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _run_script(db_config: dict, path: Path) -> int:
    target = DBConfig.from_mapping(db_config)
    sql = _strip_create_db_and_use(path.read_text(encoding="utf-8"))
    conn = _connect(target)
    count = 0
    try:
        cur = conn.cursor()
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
            count += 1
        conn.commit()
    finally:
        conn.close()
    return count


def ensure_database_exists(db_config: dict) -> None:
    target = DBConfig.from_mapping(db_config)
    conn = _connect(target, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    n = _run_script(db_config, Path(schema_path))
    logger.info("Applied %s (%s statements)", Path(schema_path).name, n)


def apply_seed_sql(db_config: dict, *, seed_path: str | Path) -> None:
    n = _run_script(db_config, Path(seed_path))
    logger.info("Applied %s (%s statements)", Path(seed_path).name, n)


DEMO_USERS = (
    # username, email, full name, role, password, hourly rate
    ("owner", "owner@example.org", "Olivia Owner", Role.OWNER, "owner12345", Decimal("60.00")),
    ("scheduler", "scheduler@example.org", "Sam Scheduler", Role.SCHEDULER, "scheduler123", Decimal("35.00")),
    ("payroll", "payroll@example.org", "Pat Payroll", Role.PAYROLL, "payroll123", Decimal("35.00")),
    ("nurse", "nurse@example.org", "Riley Nurse", Role.RN, "nurse12345", Decimal("48.00")),
)


def ensure_demo_users(db_config: dict) -> None:
    """Create (or reset the password of) the demo accounts as active users."""

    target = DBConfig.from_mapping(db_config)
    conn = _connect(target)
    try:
        cur = conn.cursor(dictionary=True)
        for username, email, full_name, role, password, rate in DEMO_USERS:
            password_hash = generate_password_hash(password)
            cur.execute("SELECT id FROM users WHERE username=%s", (username,))
            if cur.fetchone():
                cur.execute(
                    """
                    UPDATE users
                    SET password_hash=%s, role=%s, status=%s, onboarding_completed=1,
                        onboarding_token=NULL, onboarding_token_expiry=NULL
                    WHERE username=%s
                    """,
                    (password_hash, role.value, UserStatus.ACTIVE.value, username),
                )
            else:
                cur.execute(
                    """
                    INSERT INTO users (username, email, password_hash, full_name, role, default_hourly_rate,
                                       status, onboarding_completed, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, 1, %s)
                    """,
                    (username, email, password_hash, full_name, role.value, rate, UserStatus.ACTIVE.value, utc_now()),
                )
        conn.commit()
    finally:
        conn.close()
    logger.info("Demo users ready: %s", ", ".join(u[0] for u in DEMO_USERS))


def list_tables(db_config: dict) -> list[str]:
    conn = _connect(DBConfig.from_mapping(db_config))
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
