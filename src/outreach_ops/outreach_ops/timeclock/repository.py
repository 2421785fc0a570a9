from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from ..core.enums import TimeEntryStatus
from .model import TimeEntry


class TimeEntryRepository(Protocol):
    def get_by_id(self, entry_id: int, *, for_update: bool = False) -> Optional[TimeEntry]:
        raise NotImplementedError

    def get_active_for_user(self, user_id: int, *, for_update: bool = False) -> Optional[TimeEntry]:
        raise NotImplementedError

    def list(
        self,
        *,
        user_id: Optional[int] = None,
        clock_in_from: Optional[datetime] = None,
        clock_in_before: Optional[datetime] = None,
        statuses: Optional[Iterable[TimeEntryStatus]] = None,
    ) -> Sequence[TimeEntry]:
        """Entries ordered by clock_in, then id."""
        raise NotImplementedError

    def create(self, entry: TimeEntry) -> int:
        """Insert an entry; raises AlreadyClockedInError if the user already has an active one."""
        raise NotImplementedError

    def update(self, entry_id: int, changes: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def close(
        self,
        entry_id: int,
        *,
        clock_out: datetime,
        status: TimeEntryStatus,
        changes: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Close an entry that is still active and unlocked; False otherwise."""
        raise NotImplementedError

    def set_locked(self, entry_ids: Sequence[int], locked: bool) -> int:
        raise NotImplementedError
