"""
Session and password-recovery service functions.

Refresh-token rotation, logout, change password, and the forgot/reset
password flow built on single-use hashed reset tokens.
"""

from typing import Any, Dict, Optional
from urllib.parse import urlencode
import logging

import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.users import (
    get_user_by_email,
    hash_password_async,
    issue_tokens,
    user_to_dict,
    verify_password_async,
)
from core.config import settings
from core.errors import (
    AccountDisabledError,
    DependencyFailure,
    UnauthorizedError,
    ValidationError,
    require_fields,
    surface_db_errors,
)
from core.integrations.email import EmailService
from core.security import (
    REFRESH_TOKEN_TYPE,
    generate_reset_token,
    verify_jwt_token,
    verify_reset_token,
)
from core.utils.datetime import is_past, now
from core.utils.validators import validate_password
from database.models.users import User

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If that email exists, a reset link has been sent."
INVALID_RESET_TOKEN = "Invalid or expired reset token"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"


def build_reset_link(raw_token: str, email: str) -> str:
    """Reset link on the configured frontend. Never derived from the request host."""
    query = urlencode({"token": raw_token, "email": email})
    return f"{settings.frontend_url.rstrip('/')}/auth/ResetPassword?{query}"


@surface_db_errors()
async def refresh_access_token(
    db: AsyncSession,
    refresh_token: Optional[str],
) -> Dict[str, Any]:
    """
    Exchange a refresh token for a new access token.

    The user is re-read so a deleted or disabled account cannot refresh.
    The returned refreshToken replaces the caller's cookie.
    """
    if not refresh_token:
        raise UnauthorizedError("Refresh token is required")

    try:
        payload = verify_jwt_token(
            refresh_token,
            settings.refresh_token_secret,
            algorithm=settings.jwt_algorithm,
            expected_type=REFRESH_TOKEN_TYPE,
        )
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected refresh token: {type(e).__name__}")
        raise UnauthorizedError(INVALID_REFRESH_TOKEN) from e

    user_id = payload.get("id")
    if not isinstance(user_id, int):
        raise UnauthorizedError(INVALID_REFRESH_TOKEN)

    user = await db.get(User, user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    if not user.is_active:
        raise AccountDisabledError()

    tokens = issue_tokens(user)
    return {
        "accessToken": tokens["accessToken"],
        "refreshToken": tokens["refreshToken"],
        "user": user_to_dict(user),
    }


async def logout_user(refresh_token: Optional[str]) -> Dict[str, Any]:
    """
    End the session. Always succeeds; the route clears the cookie.

    Refresh tokens are stateless, so there is nothing to revoke server side.
    """
    if not refresh_token:
        logger.debug("Logout without a refresh cookie")
    return {"message": "Logout successful"}


@surface_db_errors()
async def change_password(
    db: AsyncSession,
    user_id: Optional[int],
    current_password: Optional[str],
    new_password: Optional[str],
) -> Dict[str, Any]:
    """Change the password of a signed-in user and drop any pending reset token."""
    if not user_id:
        raise UnauthorizedError("Unauthorized")
    require_fields({"currentPassword": current_password, "newPassword": new_password})

    user = await db.get(User, user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    if not user.is_active:
        raise AccountDisabledError()

    if not await verify_password_async(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")

    is_valid, error = validate_password(new_password)
    if not is_valid:
        raise ValidationError(error)

    user.password_hash = await hash_password_async(new_password)
    user.clear_reset_token()
    user.password_reset_used_at = None
    await db.commit()

    logger.info(f"Password changed for user {user.id}")
    return {"message": "Password changed successfully"}


@surface_db_errors()
async def forgot_password(
    db: AsyncSession,
    email: Optional[str],
    mailer: EmailService,
) -> Dict[str, Any]:
    """
    Start a password reset.

    The response is the same whether or not the account exists, and also
    when the mail cannot be sent. A token is only generated and mailed for
    an existing, active account.
    """
    require_fields({"email": email})
    generic_result = {"message": FORGOT_PASSWORD_MESSAGE}

    user = await get_user_by_email(db, email)
    if user is None or not user.is_active:
        return generic_result

    reset = generate_reset_token(settings.reset_token_ttl_minutes)
    user.password_reset_token_hash = reset.token_hash
    user.password_reset_expires_at = reset.expires_at
    user.password_reset_used_at = None
    await db.commit()

    try:
        await mailer.send_password_reset_email(
            user.email, build_reset_link(reset.raw_token, user.email)
        )
    except DependencyFailure:
        # Answer as for an unknown email and drop the undelivered token
        logger.warning(f"Password reset link for user {user.id} was not delivered")
        user.clear_reset_token()
        await db.commit()
        return generic_result

    logger.info(f"Password reset link issued for user {user.id}")
    return generic_result


@surface_db_errors()
async def reset_password(
    db: AsyncSession,
    email: Optional[str],
    token: Optional[str],
    new_password: Optional[str],
) -> Dict[str, Any]:
    """
    Complete a password reset with a single-use token.

    Unknown account, disabled account, mismatch, expiry and reuse all fail
    with the same message.
    """
    require_fields({"email": email, "token": token, "newPassword": new_password})

    is_valid, error = validate_password(new_password)
    if not is_valid:
        raise ValidationError(error)

    user = await get_user_by_email(db, email)
    if user is None or not user.is_active:
        raise ValidationError(INVALID_RESET_TOKEN)

    expired = (
        user.password_reset_expires_at is None
        or is_past(user.password_reset_expires_at)
    )
    matches = verify_reset_token(user.password_reset_token_hash, token)
    if expired or not matches:
        raise ValidationError(INVALID_RESET_TOKEN)

    user.password_hash = await hash_password_async(new_password)
    user.clear_reset_token()
    user.password_reset_used_at = now()
    await db.commit()

    logger.info(f"Password reset completed for user {user.id}")
    return {"message": "Password updated successfully"}
