from __future__ import annotations

from typing import Sequence

from ...core.exceptions import ValidationError
from ..model import TimeEntry
from .base import ClockOutPolicy


class AttachmentRequiredPolicy(ClockOutPolicy):
    """Clinical jobs: at least one shift-note attachment."""

    def check(self, entry: TimeEntry, attachments: Sequence[str]) -> None:
        if not attachments:
            raise ValidationError(
                "At least one shift note attachment is required to clock out",
                {"shiftNoteAttachments": "at least one attachment is required"},
            )
