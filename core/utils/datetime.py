"""Datetime utilities."""

from datetime import datetime, timezone
from typing import Optional


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (as returned by some drivers) as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def is_past(dt: Optional[datetime]) -> bool:
    """True when ``dt`` is set and already behind the current UTC time."""
    aware = ensure_aware(dt)
    return aware is not None and aware < now()


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    aware = ensure_aware(dt)
    return aware.isoformat() if aware else None
