from fastapi import HTTPException, status

from ..domain.errors import BookingNotAllowedError, DomainError


def to_http_exception(exc: DomainError) -> HTTPException:
    """Map a domain error onto `{"detail": {"error", "code"}}` with its status code."""
    message = exc.display_message if isinstance(exc, BookingNotAllowedError) else exc.message
    return HTTPException(status_code=exc.status_code, detail={"error": message, "code": exc.code})


def audit_failure() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": "failed to write audit log", "code": "INTERNAL_ERROR"},
    )
