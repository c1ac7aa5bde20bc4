"""
Core middleware package.

- Error handling with the response envelope and message sanitization
- Structured request logging with credential masking
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
    error_body,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    setup_logging,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    "error_body",
    # Logging
    "StructuredLoggingMiddleware",
    "setup_logging",
]
