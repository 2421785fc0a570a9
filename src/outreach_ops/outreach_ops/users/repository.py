from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, Sequence

from .model import User


class UserRepository(Protocol):
    """Repository interface for User.

    Services depend on this Protocol, never on a concrete database.
    """

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_username(self, username: str) -> Optional[User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    def list_all(self) -> Sequence[User]:
        raise NotImplementedError

    def create_user(self, user: User) -> int:
        raise NotImplementedError

    def update_user(self, user_id: int, changes: Mapping[str, Any]) -> bool:
        """Apply attribute-name -> value changes; returns False when no such user."""
        raise NotImplementedError

    def consume_onboarding_token(
        self,
        token: str,
        *,
        now: datetime,
        password_hash: str,
        custom_fields: Optional[Mapping[str, Any]],
    ) -> Optional[int]:
        """Atomically activate the user holding an unexpired token and clear the token.

        Returns the user id, or None when the token is unknown, expired or already used.
        """
        raise NotImplementedError
