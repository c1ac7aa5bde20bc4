"""Formatting helpers for slugs and log-safe values."""

import re
import secrets
import time


def slugify(text: str) -> str:
    """
    Convert text to URL-safe slug.
    
    Args:
        text: Text to convert
        
    Returns:
        URL-safe slug
    """
    text = text.lower()
    
    # Replace spaces and underscores with hyphens
    text = re.sub(r'[\s_]+', '-', text)
    
    # Remove non-alphanumeric characters except hyphens
    text = re.sub(r'[^a-z0-9-]', '', text)
    
    text = re.sub(r'-+', '-', text)
    
    return text.strip('-')


def unique_job_slug(title: str) -> str:
    """Slug for a job: ``<slugified-title>-<ms timestamp>-<random>``."""
    base = slugify(title) or "job"
    return f"{base}-{int(time.time() * 1000)}-{secrets.randbelow(10000):04d}"


def mask_email(email: str) -> str:
    """
    Mask email address for logs.
    
    Returns:
        Masked email (e.g., "j***e@example.com")
    """
    if '@' not in email:
        return email
    
    local, domain = email.split('@', 1)
    
    if len(local) <= 2:
        masked_local = local[0] + '*'
    else:
        masked_local = local[0] + '*' * (len(local) - 2) + local[-1]
    
    return f"{masked_local}@{domain}"


def escape_like(term: str) -> str:
    """Escape LIKE wildcards (``\\`` is the escape character)."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
