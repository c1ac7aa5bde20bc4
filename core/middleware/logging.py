"""
Structured request logging with credential masking.

Credentials travel through this API in bodies (passwords, reset tokens),
headers (bearer tokens) and cookies (refresh token), so all three are
masked before anything is logged.
"""

import logging
import time
import json
import re
import uuid
import traceback
from typing import Callable, Any
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

# Field names whose values are never logged
SENSITIVE_FIELD_PATTERNS = [
    re.compile(r'password', re.IGNORECASE),
    re.compile(r'token', re.IGNORECASE),
    re.compile(r'secret', re.IGNORECASE),
    re.compile(r'authorization', re.IGNORECASE),
    re.compile(r'cookie', re.IGNORECASE),
    re.compile(r'session', re.IGNORECASE),
]

EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')

# Health and readiness checks
SKIP_PATHS = ('/health', '/ready')


def is_sensitive_field(field_name: str) -> bool:
    return any(pattern.search(field_name) for pattern in SENSITIVE_FIELD_PATTERNS)


def mask_sensitive_data(data: Any, depth: int = 0, max_depth: int = 10) -> Any:
    """
    Recursively mask credentials and e-mail addresses.

    Args:
        data: Data structure to mask
        depth: Current recursion depth
        max_depth: Maximum recursion depth

    Returns:
        Data structure with sensitive values masked
    """
    if depth > max_depth:
        return "[MAX_DEPTH_EXCEEDED]"

    if isinstance(data, dict):
        return {
            key: REDACTED
            if is_sensitive_field(str(key))
            else mask_sensitive_data(value, depth + 1, max_depth)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [mask_sensitive_data(item, depth + 1, max_depth) for item in data]
    if isinstance(data, str):
        return EMAIL_PATTERN.sub('[EMAIL]', data)
    return data


def mask_headers(headers: dict) -> dict:
    """Mask credential headers, keeping the auth scheme visible."""
    masked = {}
    for key, value in headers.items():
        key_lower = key.lower()
        if not is_sensitive_field(key_lower):
            masked[key] = value
        elif key_lower == 'authorization' and ' ' in value:
            scheme = value.split(' ', 1)[0]
            masked[key] = f"{scheme} {REDACTED}"
        else:
            masked[key] = REDACTED
    return masked


def should_log_request(path: str) -> bool:
    return not any(path.endswith(skip) for skip in SKIP_PATHS)


def get_client_ip(request: Request) -> str:
    """Client address, honouring the first hop of ``x-forwarded-for``."""
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    return request.client.host if request.client else 'unknown'


def mask_ip(ip: str) -> str:
    """Drop the host part of an IPv4 address for logs."""
    parts = ip.split('.')
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.{parts[2]}.xxx"
    return 'unknown'


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs one JSON line when a request starts and one when it completes.

    Every response echoes ``x-request-id``; a caller-supplied id is reused.
    """

    def __init__(
        self,
        app: ASGIApp,
        log_request_body: bool = False,
        max_body_size: int = 1024,
    ):
        super().__init__(app)
        self.log_request_body = log_request_body
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get('x-request-id', str(uuid.uuid4()))
        request.state.request_id = request_id

        if not should_log_request(request.url.path):
            response = await call_next(request)
            response.headers['x-request-id'] = request_id
            return response

        start_time = time.time()

        request_log = {
            'event': 'request_started',
            'request_id': request_id,
            'method': request.method,
            'path': request.url.path,
            'query_params': mask_sensitive_data(dict(request.query_params)),
            'client_ip': mask_ip(get_client_ip(request)),
            'headers': mask_headers(dict(request.headers)),
        }

        if self.log_request_body and request.method in ['POST', 'PUT', 'PATCH']:
            body = await self._get_request_body(request)
            if body is not None:
                request_log['body'] = mask_sensitive_data(body)

        logger.info(json.dumps(request_log))

        response = None
        try:
            response = await call_next(request)
        finally:
            duration = time.time() - start_time
            status_code = response.status_code if response else 500
            response_log = {
                'event': 'request_completed',
                'request_id': request_id,
                'method': request.method,
                'path': request.url.path,
                'duration_ms': round(duration * 1000, 2),
                'status_code': status_code,
            }

            if status_code >= 500:
                logger.error(json.dumps(response_log))
            elif status_code >= 400:
                logger.warning(json.dumps(response_log))
            else:
                logger.info(json.dumps(response_log))

            if response:
                response.headers['x-request-id'] = request_id

        return response

    async def _get_request_body(self, request: Request) -> Any:
        """Parsed JSON body, or a size marker when it is too large to log."""
        if 'application/json' not in request.headers.get('content-type', ''):
            return None
        body_bytes = await request.body()
        if len(body_bytes) > self.max_body_size:
            return {'_truncated': True, '_size': len(body_bytes)}
        try:
            return json.loads(body_bytes.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Could not parse request body: {e}")
            return None


class StructuredFormatter(logging.Formatter):
    """Formats log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if hasattr(record, 'request_id'):
            log_data['request_id'] = record.request_id

        if hasattr(record, 'user_id'):
            log_data['user_id'] = record.user_id

        if record.exc_info and record.exc_info[0] is not None:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = "INFO", json_logs: bool = True):
    """
    Configure application-wide logging on the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_logs: Whether to format logs as JSON
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    if json_logs:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
