from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import DocumentStatus
from .model import Document


class DocumentRepository(Protocol):
    def get_by_id(self, document_id: int, *, for_update: bool = False) -> Optional[Document]:
        raise NotImplementedError

    def list(self, *, user_id: Optional[int] = None) -> Sequence[Document]:
        raise NotImplementedError

    def create(self, document: Document) -> int:
        raise NotImplementedError

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
        raise NotImplementedError
