"""
Error handling middleware with security-compliant error sanitization.
Prevents sensitive data leakage while keeping the response envelope stable.
"""

import logging
import traceback
from typing import Any, Callable
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError
import re

from core.errors import AppError, ErrorKind

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong!"

# Patterns for sensitive data that should never be logged
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'cookie["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'\b\d{16}\b'),  # Credit card
]

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.DEPENDENCY_FAILURE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
}


def sanitize_error_message(message: str) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = message
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


def error_body(message: str) -> dict[str, Any]:
    """Failure envelope shared by every error response."""
    return {"MESSAGE": message, "STATUS": 0, "IS_TOKEN_EXPIRE": 0}


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(message))


def status_for(exc: AppError) -> int:
    return STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)


def first_validation_message(exc: RequestValidationError) -> str:
    """Turn the first pydantic error into a single readable message."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    error = errors[0]
    # Drop the "body"/"query" prefix from the location
    location = [str(loc) for loc in error.get("loc", ()) if loc not in ("body", "query", "path")]
    message = sanitize_error_message(str(error.get("msg", "Invalid value")))
    if location:
        return f"{'.'.join(location)}: {message}"
    return message


class ErrorHandlingMiddleware:
    """
    Outermost ASGI guard.

    Anything that escapes the route-level exception handlers is logged with
    its traceback and masked behind a generic message.
    """

    def __init__(self, app: Callable, debug: bool = False):
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = await self._handle_exception(exc, scope)
            await response(scope, receive, send)

    async def _handle_exception(self, exc: Exception, scope: dict) -> Response:
        """
        Map an exception to an enveloped response.

        Args:
            exc: The exception to handle
            scope: ASGI scope for context

        Returns:
            JSONResponse with the failure envelope
        """
        request_path = scope.get("path", "unknown")
        request_method = scope.get("method", "unknown")

        if isinstance(exc, AppError):
            logger.warning(
                f"Application error: {request_method} {request_path} - "
                f"{exc.kind.value}: {sanitize_error_message(exc.message)}"
            )
            return error_response(exc.message, status_for(exc))

        if isinstance(exc, StarletteHTTPException):
            message = sanitize_error_message(str(exc.detail))
            logger.warning(
                f"HTTP exception: {request_method} {request_path} - "
                f"Status: {exc.status_code}, Message: {message}"
            )
            return error_response(message, exc.status_code)

        if isinstance(exc, RequestValidationError):
            message = first_validation_message(exc)
            logger.warning(
                f"Validation error: {request_method} {request_path} - {message}"
            )
            return error_response(message, status.HTTP_400_BAD_REQUEST)

        if isinstance(exc, SQLAlchemyError):
            logger.error(
                f"SQLAlchemy error: {request_method} {request_path}",
                exc_info=True,
            )
        else:
            logger.error(
                f"Unhandled exception: {request_method} {request_path} - "
                f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
                exc_info=True,
            )
        if self.debug:
            logger.debug(traceback.format_exc())
        return error_response(
            GENERIC_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR
        )


def setup_error_handlers(app):
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        """Render a business-rule failure with its message verbatim."""
        logger.info(
            f"{exc.kind.value}: {request.method} {request.url.path} - "
            f"{sanitize_error_message(exc.message)}"
        )
        return error_response(exc.message, status_for(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions (unknown routes, wrong methods)."""
        return error_response(
            sanitize_error_message(str(exc.detail)), exc.status_code
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request-shape errors as a plain 400."""
        message = first_validation_message(exc)
        logger.info(
            f"Validation error: {request.method} {request.url.path} - {message}"
        )
        return error_response(message, status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        logger.error(
            f"Unhandled exception: {request.method} {request.url.path} - "
            f"{type(exc).__name__}: {sanitize_error_message(str(exc))}",
            exc_info=True
        )
        return error_response(
            GENERIC_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR
        )
