from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from ..common.encryption import FieldCipher
from ..core.enums import DocumentStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Document
from .repository import DocumentRepository


class MySQLDocumentRepository(DocumentRepository):
    def __init__(self, conn_factory: DatabaseConnection, cipher: FieldCipher):
        self._conn_factory = conn_factory
        self._cipher = cipher

    def _row_to_document(self, row: dict) -> Document:
        return Document(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            title=row["title"],
            description=row.get("description"),
            file_url=row["file_url"],
            file_type=row.get("file_type"),
            category=row.get("category"),
            metadata=self._cipher.decrypt_json(row.get("metadata_enc")),
            status=DocumentStatus(row["status"]),
            uploaded_date=row["uploaded_date"],
            expiry_date=row.get("expiry_date"),
            approved_by=row.get("approved_by"),
            approved_at=row.get("approved_at"),
            notes=row.get("notes"),
        )

    def get_by_id(self, document_id: int, *, for_update: bool = False) -> Optional[Document]:
        sql = "SELECT * FROM documents WHERE id=%s" + (" FOR UPDATE" if for_update else "")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, (document_id,))
            row = fetchone(cur)
            return self._row_to_document(row) if row else None

    def list(self, *, user_id: Optional[int] = None) -> Sequence[Document]:
        with db_cursor(self._conn_factory) as (_, cur):
            if user_id is not None:
                cur.execute(
                    "SELECT * FROM documents WHERE user_id=%s ORDER BY uploaded_date ASC, id ASC", (user_id,)
                )
            else:
                cur.execute("SELECT * FROM documents ORDER BY uploaded_date ASC, id ASC")
            return [self._row_to_document(r) for r in fetchall(cur)]

    def create(self, document: Document) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO documents(user_id, title, description, file_url, file_type, category, metadata_enc,
                                      status, uploaded_date, expiry_date, notes)
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    document.user_id,
                    document.title,
                    document.description,
                    document.file_url,
                    document.file_type,
                    document.category,
                    self._cipher.encrypt_json(document.metadata),
                    document.status.value,
                    document.uploaded_date,
                    document.expiry_date,
                    document.notes,
                ),
            )
            return int(cur.lastrowid)

    def set_status(
        self,
        document_id: int,
        status: DocumentStatus,
        *,
        expected: DocumentStatus,
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
                f"UPDATE documents SET {', '.join(sets)} WHERE id=%s AND status=%s",
                (*params, document_id, expected.value),
            )
            return cur.rowcount == 1
