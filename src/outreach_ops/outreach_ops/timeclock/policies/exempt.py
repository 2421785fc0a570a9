from __future__ import annotations

from typing import Sequence

from ..model import TimeEntry
from .base import ClockOutPolicy


class AttachmentExemptPolicy(ClockOutPolicy):
    """Jobs flagged attachment-exempt (e.g. office work): nothing required."""

    def check(self, entry: TimeEntry, attachments: Sequence[str]) -> None:
        return None
