"""FastAPI dependencies for dependency injection."""

import logging
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
import jwt

from core.config import settings
from core.errors import (
    AccountDisabledError,
    ForbiddenError,
    UnauthorizedError,
)
from core.integrations.email import EmailService
from core.security import ACCESS_TOKEN_TYPE, verify_jwt_token
from database.engine import get_db
from database.models.users import User, UserType

logger = logging.getLogger(__name__)

MISSING_TOKEN = "Unauthorized: Missing token"
INVALID_TOKEN = "Unauthorized: Invalid or expired token"
HR_ONLY = "Only HR users can perform this action"

security = HTTPBearer(auto_error=False)


async def _user_from_token(db: AsyncSession, token: str) -> User:
    try:
        payload = verify_jwt_token(
            token,
            settings.access_token_secret,
            algorithm=settings.jwt_algorithm,
            expected_type=ACCESS_TOKEN_TYPE,
        )
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected access token: {type(e).__name__}")
        raise UnauthorizedError(INVALID_TOKEN) from e

    user_id = payload.get("id")
    if not isinstance(user_id, int):
        raise UnauthorizedError(INVALID_TOKEN)
    user = await db.get(User, user_id)
    if user is None:
        raise UnauthorizedError(INVALID_TOKEN)
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the bearer access token to a fresh, active user.

    The user row is always re-read, so a disabled or deleted account stops
    working before its access token expires.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError(MISSING_TOKEN)

    user = await _user_from_token(db, credentials.credentials)
    if not user.is_active:
        raise AccountDisabledError()
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    Get current user if a valid token is present, otherwise None.
    Used by public endpoints that personalise their output.
    """
    if credentials is None or not credentials.credentials:
        return None
    try:
        user = await _user_from_token(db, credentials.credentials)
    except UnauthorizedError:
        return None
    return user if user.is_active else None


async def require_hr_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Require the caller to be an HR user."""
    if current_user.user_type != UserType.HR:
        raise ForbiddenError(HR_ONLY)
    return current_user


def get_email_service() -> EmailService:
    """Mail transport built from settings. Overridden in tests."""
    return EmailService.from_settings(settings)
