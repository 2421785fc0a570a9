from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .enums import Role


@dataclass(frozen=True)
class Actor:
    """Who is performing a use case; built by the controller from the session."""

    user_id: int
    role: Role
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
