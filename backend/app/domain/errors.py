from __future__ import annotations

from typing import Literal, Optional

BookingNotAllowedCode = Literal[
    "VENUE_NOT_FOUND",
    "VENUE_DELETED",
    "VENUE_PAUSED",
    "VENUE_NOT_APPROVED",
    "OWNER_DELETED",
    "RESOURCE_DISABLED",
]


class DomainError(Exception):
    """Base for errors the HTTP layer turns into structured JSON responses."""

    status_code: int = 400
    code: str = "BAD_REQUEST"

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(DomainError):
    status_code = 400
    code = "VALIDATION_ERROR"


class PastTimeError(ValidationError):
    code = "PAST_TIME"

    def __init__(self, message: str = "This date/time is in the past. Please select a current or future time.") -> None:
        super().__init__(message)


class CapacityExceededError(ValidationError):
    code = "CAPACITY_EXCEEDED"


class NotFoundError(DomainError):
    status_code = 404
    code = "NOT_FOUND"


class AuthorizationError(DomainError):
    status_code = 403
    code = "FORBIDDEN"


class ConflictError(DomainError):
    status_code = 409
    code = "CONFLICT"


class BookingNotAllowedError(DomainError):
    status_code = 403

    def __init__(
        self,
        message: str,
        code: BookingNotAllowedCode,
        public_message: Optional[str] = None,
    ) -> None:
        super().__init__(message, code=code)
        self.public_message = public_message

    @property
    def display_message(self) -> str:
        return self.public_message or self.message
