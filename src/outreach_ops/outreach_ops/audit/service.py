from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from ..common.datetime_utils import utc_now
from ..common.validators import parse_int
from ..core.actor import Actor
from ..core.constants import DEFAULT_AUDIT_LIMIT, MAX_AUDIT_LIMIT
from ..core.permissions import Action, require
from .model import AuditLog
from .repository import AuditLogRepository

logger = logging.getLogger(__name__)


class AuditTrail:
    """Appends audit records.

    Callers invoke record() inside their own transaction so the audit row and
    the change it describes commit (or fail) together. Errors are not caught.
    """

    def __init__(self, logs: AuditLogRepository, *, clock: Callable = utc_now):
        self._logs = logs
        self._clock = clock

    def record(
        self,
        *,
        action: str,
        resource_type: str,
        resource_id: Any = None,
        actor: Optional[Actor] = None,
        user_id: Optional[int] = None,
        phi_fields: Iterable[str] = (),
        details: Optional[Mapping[str, Any]] = None,
    ) -> int:
        phi = sorted(set(phi_fields))
        entry = AuditLog(
            id=0,
            user_id=actor.user_id if actor else user_id,
            action=action,
            resource_type=resource_type,
            resource_id=None if resource_id is None else str(resource_id),
            ip_address=actor.ip_address if actor else None,
            user_agent=actor.user_agent if actor else None,
            phi_accessed=bool(phi),
            phi_fields=phi,
            details=dict(details or {}),
            timestamp=self._clock(),
        )
        log_id = self._logs.append(entry)
        logger.debug("audit %s %s:%s by %s", action, resource_type, resource_id, entry.user_id)
        return log_id


class AuditLogService:
    """Use case: read the audit trail (Owner/Admin)."""

    def __init__(self, logs: AuditLogRepository):
        self._logs = logs

    def list_logs(
        self,
        actor: Actor,
        *,
        user_id: Any = None,
        resource_type: Optional[str] = None,
        limit: Any = None,
    ) -> Sequence[AuditLog]:
        require(actor.role, Action.AUDIT_VIEW)
        uid = parse_int(user_id, "userId", min_value=1) if user_id not in (None, "") else None
        n = DEFAULT_AUDIT_LIMIT if limit in (None, "") else parse_int(limit, "limit", min_value=1)
        return self._logs.list(user_id=uid, resource_type=resource_type or None, limit=min(n, MAX_AUDIT_LIMIT))
