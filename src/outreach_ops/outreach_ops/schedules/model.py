from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import ScheduleStatus


@dataclass(frozen=True)
class Schedule:
    """A named date range that groups shifts (e.g. 'March outreach')."""

    id: int
    title: str
    start_date: date
    end_date: date
    status: ScheduleStatus
    created_by: int
    description: Optional[str] = None
    created_at: Optional[datetime] = None
