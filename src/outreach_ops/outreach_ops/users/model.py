from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from ..core.enums import Role, UserStatus

# Never sent to clients.
PRIVATE_FIELDS = ("password_hash", "onboarding_token")

# Custom fields hold PHI (license numbers, emergency contacts, allergies, ...).
PHI_FIELD = "custom_fields"


@dataclass(frozen=True)
class User:
    """Domain entity: a staff member or back-office user.

    custom_fields is held decrypted in memory; the MySQL repository encrypts it at rest.
    """

    id: int
    username: str
    email: str
    full_name: str
    role: Role
    status: UserStatus
    phone_number: Optional[str] = None
    default_hourly_rate: Decimal = Decimal("25.00")
    job_rates: dict[str, Decimal] = field(default_factory=dict)
    custom_fields: dict[str, Any] = field(default_factory=dict)
    password_hash: Optional[str] = None
    onboarding_token: Optional[str] = None
    onboarding_token_expiry: Optional[datetime] = None
    onboarding_completed: bool = False
    created_at: Optional[datetime] = None

    def rate_for_job(self, job_name: Optional[str]) -> Decimal:
        if job_name and job_name in self.job_rates:
            return self.job_rates[job_name]
        return self.default_hourly_rate
