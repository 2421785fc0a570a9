from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..core.enums import DocumentStatus

# Document metadata holds PHI (license numbers, SSN fragments, ...).
PHI_FIELD = "metadata"


@dataclass(frozen=True)
class Document:
    """A user's credential document (license, certification, background check, ...).

    `status` is what was stored; `effective_status` is derived from the expiry
    date at read time and never written back.
    """

    id: int
    user_id: int
    title: str
    file_url: str
    status: DocumentStatus
    uploaded_date: datetime
    description: Optional[str] = None
    file_type: Optional[str] = None
    category: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    expiry_date: Optional[datetime] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    notes: Optional[str] = None
    effective_status: Optional[DocumentStatus] = None
