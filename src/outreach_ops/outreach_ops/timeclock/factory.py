from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from .policies.attachment_required import AttachmentRequiredPolicy
from .policies.base import ClockOutPolicy
from .policies.exempt import AttachmentExemptPolicy


def _normalize(job_name: Optional[str]) -> str:
    return (job_name or "").strip().casefold()


@dataclass
class ClockOutPolicyFactory:
    """Factory Pattern: choose the clock-out policy by the entry's job name.

    Job names are matched case-insensitively against `exempt_jobs`.
    """

    exempt_jobs: Iterable[str] = field(default_factory=tuple)

    def __post_init__(self):
        self._exempt = frozenset(_normalize(j) for j in self.exempt_jobs if _normalize(j))

    def is_exempt(self, job_name: Optional[str]) -> bool:
        return _normalize(job_name) in self._exempt

    def for_job(self, job_name: Optional[str]) -> ClockOutPolicy:
        if self.is_exempt(job_name):
            return AttachmentExemptPolicy()
        return AttachmentRequiredPolicy()
