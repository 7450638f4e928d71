"""
Domain errors and translation of store errors into user-facing messages.

Store errors never reach the client verbatim: constraint names, column names
and SQL fragments stay in the server log.
"""
import logging
from typing import Optional

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An error occurred. Please try again."

# PostgreSQL SQLSTATE codes
PG_ERROR_MESSAGES = {
    "23505": "This record already exists.",
    "23503": "Invalid reference. The related record may not exist.",
    "23514": "Invalid data format. Please check your input.",
    "23502": "Required field is missing.",
    "42501": "You do not have permission to perform this action.",
    "P0001": "Validation error. Please check your input.",
}

# SQLite reports constraint failures only through the message text
SQLITE_ERROR_CODES = {
    "UNIQUE constraint failed": "23505",
    "FOREIGN KEY constraint failed": "23503",
    "CHECK constraint failed": "23514",
    "NOT NULL constraint failed": "23502",
}


class ClinicError(Exception):
    """Base class for errors raised by the service layer."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND


class ValidationFailedError(ClinicError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidTransitionError(ClinicError):
    status_code = status.HTTP_409_CONFLICT


class BookingUnavailableError(ClinicError):
    status_code = status.HTTP_409_CONFLICT


class FeatureLockedError(ClinicError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str, plan_required: Optional[str] = None):
        super().__init__(message)
        self.plan_required = plan_required


class LimitReachedError(ClinicError):
    status_code = status.HTTP_403_FORBIDDEN


class SessionMaterializationError(ClinicError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_code(error: SQLAlchemyError) -> Optional[str]:
    orig = getattr(error, "orig", None)
    if orig is None:
        return None

    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code

    text = str(orig)
    for fragment, mapped in SQLITE_ERROR_CODES.items():
        if fragment in text:
            return mapped
    return None


def map_database_error(error: Exception) -> str:
    """Map a store error to a fixed user-facing message."""
    if not isinstance(error, SQLAlchemyError):
        return "An unexpected error occurred. Please try again."

    code = _error_code(error)
    if code in PG_ERROR_MESSAGES:
        return PG_ERROR_MESSAGES[code]

    logger.error(f"Database error: {error}")
    return GENERIC_ERROR_MESSAGE
