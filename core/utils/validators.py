"""Validation utilities for account and job fields."""

import re
from typing import Optional
from email_validator import validate_email as _validate_email, EmailNotValidError

MIN_PASSWORD_LENGTH = 6
# bcrypt only accepts this many bytes
MAX_PASSWORD_BYTES = 72

URL_PATTERN = re.compile(
    r'^https?://'  # http:// or https://
    r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|'  # domain...
    r'localhost|'  # localhost...
    r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'  # ...or ip
    r'(?::\d+)?'  # optional port
    r'(?:/?|[/?]\S+)$', re.IGNORECASE
)


def normalize_email(email: Optional[str]) -> str:
    """Trim and lower-case an email so lookups are case-insensitive."""
    return str(email or "").strip().lower()


def validate_email(email: str) -> tuple[bool, Optional[str]]:
    """
    Validate email address format.
    
    Args:
        email: Email address to validate
        
    Returns:
        Tuple of (is_valid, normalized_email or error_message)
    """
    try:
        validation = _validate_email(email, check_deliverability=False)
        return True, validation.normalized.lower()
    except EmailNotValidError as e:
        return False, str(e)


def validate_url(url: str) -> tuple[bool, Optional[str]]:
    """
    Validate URL format.
    
    Args:
        url: URL to validate
        
    Returns:
        Tuple of (is_valid, error_message)
    """
    if not url:
        return False, "URL is required"
    
    if not URL_PATTERN.match(url):
        return False, "Invalid URL format"
    
    return True, None


def validate_password(password: str) -> tuple[bool, Optional[str]]:
    """Check the password length policy."""
    if len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False, f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
    return True, None
