from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence

import mysql.connector

from ..common.encryption import FieldCipher
from ..core.enums import Role, UserStatus
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_decimal, db_cursor, dump_json, fetchall, fetchone, is_duplicate_key, load_json, update_by_id
from .model import User
from .repository import UserRepository

# attribute -> column for update_user; custom_fields is handled separately (encrypted).
_COLUMNS = {
    "username": "username",
    "email": "email",
    "full_name": "full_name",
    "phone_number": "phone_number",
    "role": "role",
    "status": "status",
    "default_hourly_rate": "default_hourly_rate",
    "job_rates": "job_rates",
    "password_hash": "password_hash",
    "onboarding_token": "onboarding_token",
    "onboarding_token_expiry": "onboarding_token_expiry",
    "onboarding_completed": "onboarding_completed",
}


def _db_value(attr: str, value: Any) -> Any:
    if attr == "job_rates":
        return dump_json({k: str(v) for k, v in (value or {}).items()})
    if attr in ("role", "status"):
        return value.value
    if attr == "onboarding_completed":
        return int(bool(value))
    return value


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection, cipher: FieldCipher):
        self._conn_factory = conn_factory
        self._cipher = cipher

    def _row_to_user(self, row: dict) -> User:
        rates = load_json(row.get("job_rates"), {}) or {}
        return User(
            id=int(row["id"]),
            username=row["username"],
            email=row["email"],
            full_name=row["full_name"],
            phone_number=row.get("phone_number"),
            role=Role(row["role"]),
            status=UserStatus(row["status"]),
            default_hourly_rate=as_decimal(row.get("default_hourly_rate")),
            job_rates={k: Decimal(str(v)) for k, v in rates.items()},
            custom_fields=self._cipher.decrypt_json(row.get("custom_fields_enc")),
            password_hash=row.get("password_hash"),
            onboarding_token=row.get("onboarding_token"),
            onboarding_token_expiry=row.get("onboarding_token_expiry"),
            onboarding_completed=bool(row.get("onboarding_completed")),
            created_at=row.get("created_at"),
        )

    def _get_where(self, column: str, value: Any) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT * FROM users WHERE {column}=%s", (value,))
            row = fetchone(cur)
            return self._row_to_user(row) if row else None

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self._get_where("id", user_id)

    def get_by_username(self, username: str) -> Optional[User]:
        return self._get_where("username", username)

    def get_by_email(self, email: str) -> Optional[User]:
        return self._get_where("email", email)

    def list_all(self) -> Sequence[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM users ORDER BY created_at ASC, id ASC")
            return [self._row_to_user(r) for r in fetchall(cur)]

    def create_user(self, user: User) -> int:
        params = (
            user.username,
            user.email,
            user.password_hash,
            user.full_name,
            user.phone_number,
            user.role.value,
            user.default_hourly_rate,
            _db_value("job_rates", user.job_rates),
            self._cipher.encrypt_json(user.custom_fields),
            user.status.value,
            user.onboarding_token,
            user.onboarding_token_expiry,
            int(user.onboarding_completed),
            user.created_at,
        )
        with db_cursor(self._conn_factory) as (_, cur):
            try:
                cur.execute(
                    """
                    INSERT INTO users(username, email, password_hash, full_name, phone_number, role,
                                      default_hourly_rate, job_rates, custom_fields_enc, status,
                                      onboarding_token, onboarding_token_expiry, onboarding_completed, created_at)
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    params,
                )
            except mysql.connector.IntegrityError as e:
                if is_duplicate_key(e):
                    raise ConflictError("Username or email already exists") from e
                raise
            return int(cur.lastrowid)

    def update_user(self, user_id: int, changes: Mapping[str, Any]) -> bool:
        cols: dict[str, Any] = {}
        for attr, value in changes.items():
            if attr == "custom_fields":
                cols["custom_fields_enc"] = self._cipher.encrypt_json(value)
            else:
                cols[_COLUMNS[attr]] = _db_value(attr, value)
        with db_cursor(self._conn_factory) as (_, cur):
            return update_by_id(cur, "users", user_id, cols)

    def consume_onboarding_token(
        self,
        token: str,
        *,
        now: datetime,
        password_hash: str,
        custom_fields: Optional[Mapping[str, Any]],
    ) -> Optional[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT id FROM users
                WHERE onboarding_token=%s AND onboarding_token_expiry > %s
                  AND onboarding_completed=0 AND status=%s
                FOR UPDATE
                """,
                (token, now, UserStatus.PENDING_ONBOARDING.value),
            )
            row = fetchone(cur)
            if not row:
                return None
            user_id = int(row["id"])
            sets = [
                "password_hash=%s",
                "status=%s",
                "onboarding_completed=1",
                "onboarding_token=NULL",
                "onboarding_token_expiry=NULL",
            ]
            params: list[Any] = [password_hash, UserStatus.ACTIVE.value]
            if custom_fields is not None:
                sets.append("custom_fields_enc=%s")
                params.append(self._cipher.encrypt_json(dict(custom_fields)))
            cur.execute(
                f"UPDATE users SET {', '.join(sets)} WHERE id=%s AND onboarding_token=%s AND status=%s",
                (*params, user_id, token, UserStatus.PENDING_ONBOARDING.value),
            )
            return user_id if cur.rowcount == 1 else None
