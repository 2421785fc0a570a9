from __future__ import annotations

import csv
import io
from typing import Iterable, Mapping, Optional

from ..users.model import User
from .model import Timesheet

CSV_FIELDS = [
    "timesheet_id",
    "user_id",
    "username",
    "full_name",
    "period_start",
    "period_end",
    "regular_hours",
    "overtime_hours",
    "total_hours",
    "approved_by",
    "approved_at",
]


def timesheets_to_csv(timesheets: Iterable[Timesheet], users: Mapping[int, Optional[User]]) -> str:
    """Payroll export: one row per timesheet, hours as 2dp decimals."""

    out = io.StringIO()
    writer = csv.DictWriter(out, fieldnames=CSV_FIELDS)
    writer.writeheader()
    for ts in timesheets:
        user = users.get(ts.user_id)
        writer.writerow(
            {
                "timesheet_id": ts.id,
                "user_id": ts.user_id,
                "username": user.username if user else "",
                "full_name": user.full_name if user else "",
                "period_start": ts.period_start.isoformat(),
                "period_end": ts.period_end.isoformat(),
                "regular_hours": f"{ts.regular_hours:.2f}",
                "overtime_hours": f"{ts.overtime_hours:.2f}",
                "total_hours": f"{ts.total_hours:.2f}",
                "approved_by": ts.approved_by or "",
                "approved_at": ts.approved_at.isoformat() if ts.approved_at else "",
            }
        )
    return out.getvalue()
