from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class DomainError(Exception):
    """Base exception for business rule violations."""

    status_code = 400


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    def __init__(self, message: str = "Validation failed", errors: Optional[Sequence[FieldError]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class ConflictError(DomainError):
    """Raised on a duplicate subject name or lecture time slot."""


class AuthenticationError(DomainError):
    """Raised when credentials or bearer tokens are missing or invalid."""

    status_code = 401


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    status_code = 403


class NotFoundError(DomainError):
    """Raised when a resource is absent or not owned by the caller."""

    status_code = 404


class RateLimitedError(DomainError):
    status_code = 429


class StoreError(DomainError):
    """Raised when the record store fails."""

    status_code = 500
