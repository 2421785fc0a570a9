from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import AuditLog


class AuditLogRepository(Protocol):
    """Insert and read only (no update or delete)."""

    def append(self, entry: AuditLog) -> int:
        raise NotImplementedError

    def list(
        self,
        *,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        limit: int = 100,
    ) -> Sequence[AuditLog]:
        raise NotImplementedError
