from typing import Dict, Optional
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class CalendarError(Exception):
    """Base class for errors surfaced by the calendar core."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "calendar_error"

    def __init__(self, message: str = "", *, field: Optional[str] = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.field = field


class NotFound(CalendarError):
    """Event, credential or cursor absent for the given user/id."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class InvalidArgument(CalendarError):
    """Malformed time input or ``start > end``; raised before any write."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "invalid_argument"


class AuthRequired(CalendarError):
    """No stored Google credential for the user."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "auth_required"


class AuthExpired(CalendarError):
    """Refreshing the stored credential failed; the user must re-authorize."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "auth_expired"


class RemoteUnavailable(CalendarError):
    """Transient Google Calendar / network failure."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "remote_unavailable"


class PersistenceError(CalendarError):
    """Local store failure."""

    code = "persistence_error"


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    logger.error("%s %s", message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    return HTTPException(status_code=code, detail=detail)


def calendar_error_response(exc: CalendarError) -> HTTPException:
    """Map a :class:`CalendarError` onto the ``error_response`` shape."""
    field_errors = {exc.field: exc.message} if exc.field else {}
    response = error_response(exc.message, field_errors, code=exc.status_code)
    response.detail["code"] = exc.code
    return response
