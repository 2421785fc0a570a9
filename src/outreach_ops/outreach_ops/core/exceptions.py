from __future__ import annotations

from typing import Mapping, Optional


class DomainError(Exception):
    """Base exception for business rule violations.

    `kind` is the stable machine-readable name sent to clients and
    `status_code` the HTTP status the controller layer maps it to.
    """

    kind = "domain_error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    kind = "validation_error"
    status_code = 400

    def __init__(self, message: str = "Invalid input", fields: Optional[Mapping[str, str]] = None):
        super().__init__(message)
        self.fields = dict(fields or {})


class NotFoundError(DomainError):
    kind = "not_found"
    status_code = 404


class ConflictError(DomainError):
    """Raised for illegal state transitions and duplicates."""

    kind = "conflict"
    status_code = 409


class CapacityExceededError(ConflictError):
    kind = "capacity_exceeded"


class AlreadyClockedInError(ConflictError):
    kind = "already_clocked_in"


class EntryLockedError(ConflictError):
    kind = "entry_locked"


class AuthenticationError(DomainError):
    """Raised when there is no valid session, credentials or onboarding token."""

    kind = "authentication_error"
    status_code = 401


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    kind = "authorization_error"
    status_code = 403


AuthnError = AuthenticationError
AuthzError = AuthorizationError
