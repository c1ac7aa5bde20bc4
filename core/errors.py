"""
Application error taxonomy.

Every business-rule failure is raised as an ``AppError`` subclass carrying a
human-readable message that is shown to the client verbatim. The ``kind``
decides the HTTP status in ``core.middleware.error_handling``.
"""

import functools
import logging
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Discriminates application errors."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    DEPENDENCY_FAILURE = "dependency_failure"


class AppError(Exception):
    """Base exception for user-facing application errors."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Raised when a field is missing or malformed."""

    kind = ErrorKind.VALIDATION


class NotFoundError(AppError):
    """Raised when an entity is missing by id or slug."""

    kind = ErrorKind.NOT_FOUND


class UnauthorizedError(AppError):
    """Raised when the session is missing or invalid."""

    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(AppError):
    """Raised when the caller is authenticated but not permitted."""

    kind = ErrorKind.FORBIDDEN


class AccountDisabledError(ForbiddenError):
    """Raised when an operation touches an inactive account."""

    def __init__(self, message: str = "Account is disabled"):
        super().__init__(message)


class ConflictError(AppError):
    """Raised on duplicate email, application or slug."""

    kind = ErrorKind.CONFLICT


class DependencyFailure(AppError):
    """Raised when the database or the mail transport fails."""

    kind = ErrorKind.DEPENDENCY_FAILURE


def require_fields(fields: dict) -> None:
    """Raise ``ValidationError`` for the first falsy value in ``fields``."""
    for key, value in fields.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{key} is required")


def surface_db_errors(message: str = "Database is unavailable right now"):
    """
    Decorate an async service function so database failures become
    ``DependencyFailure``. Application errors pass through untouched.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except SQLAlchemyError as e:
                logger.error(f"{func.__name__} failed: {type(e).__name__}", exc_info=True)
                raise DependencyFailure(message) from e

        return wrapper

    return decorator
