from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from ..core.constants import DOCUMENT_EXPIRY_WARNING_DAYS
from ..core.enums import DocumentStatus


def effective_document_status(
    status: DocumentStatus,
    expiry_date: Optional[datetime],
    now: datetime,
    warning_days: int = DOCUMENT_EXPIRY_WARNING_DAYS,
) -> DocumentStatus:
    """Status of a document as of `now`.

    - no expiry date: the stored status
    - expiry date in the past: expired, whatever was stored
    - expiry date within `warning_days`: expiring
    - otherwise: the stored status

    Pure function; callers must not persist the result.
    """

    if expiry_date is None:
        return status
    if expiry_date < now:
        return DocumentStatus.EXPIRED
    if expiry_date - now <= timedelta(days=warning_days):
        return DocumentStatus.EXPIRING
    return status
