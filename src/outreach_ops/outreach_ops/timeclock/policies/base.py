from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ..model import TimeEntry


class ClockOutPolicy(ABC):
    """Strategy Pattern: what a clock-out must carry for a given job."""

    @abstractmethod
    def check(self, entry: TimeEntry, attachments: Sequence[str]) -> None:
        """Raise ValidationError when the clock-out cannot be accepted."""
        raise NotImplementedError
