"""
User service functions for API endpoints.

Registration, login and profile lookup. Every function takes the request's
``AsyncSession`` and plain values, and returns plain dictionaries.
"""

from typing import Any, Dict, Optional
from datetime import timedelta
import functools
import logging
import secrets

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import (
    AccountDisabledError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    require_fields,
    surface_db_errors,
)
from core.security import create_token_pair, hash_password, verify_password
from core.utils.datetime import isoformat, now
from core.utils.formatting import mask_email
from core.utils.validators import normalize_email, validate_email, validate_password
from database.models.users import Gender, User, UserType

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = "Email already registered. Please login."
INVALID_CREDENTIALS = "Invalid email or password"


def user_to_dict(user: User) -> Dict[str, Any]:
    """Public representation of a user. Never includes credential fields."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "userType": user.user_type.value,
        "gender": user.gender.value,
        "address": user.address,
        "designation": user.designation,
        "isActive": user.is_active,
        "lastLoginAt": isoformat(user.last_login_at),
        "createdAt": isoformat(user.created_at),
    }


def issue_tokens(user: User) -> Dict[str, str]:
    """Sign a fresh access/refresh pair with the configured secrets."""
    return create_token_pair(
        user.id,
        user.email,
        user.user_type.value,
        access_secret=settings.access_token_secret,
        refresh_secret=settings.refresh_token_secret,
        access_token_expires=timedelta(minutes=settings.access_token_expire_minutes),
        refresh_token_expires=timedelta(days=settings.refresh_token_expire_days),
        algorithm=settings.jwt_algorithm,
    )


async def hash_password_async(password: str) -> str:
    """bcrypt is CPU bound, so it runs off the event loop."""
    return await run_in_threadpool(hash_password, password, settings.bcrypt_rounds)


async def verify_password_async(password: str, hashed: str) -> bool:
    return await run_in_threadpool(verify_password, password, hashed)


@functools.lru_cache(maxsize=1)
def _dummy_password_hash(rounds: int) -> str:
    """Hash of a random secret at the configured cost, for unknown accounts."""
    return hash_password(secrets.token_urlsafe(16), rounds)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


@surface_db_errors()
async def register_user(
    db: AsyncSession,
    name: Optional[str],
    email: Optional[str],
    password: Optional[str],
    gender: Optional[Gender],
    address: Optional[str],
    user_type: Optional[UserType] = None,
    designation: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create an account and sign the caller in.

    Returns:
        Dictionary with accessToken, refreshToken and user
    """
    require_fields({
        "Name": name,
        "Email": email,
        "Password": password,
        "Gender": gender,
        "Address": address,
    })

    is_valid, normalized = validate_email(email.strip())
    if not is_valid:
        raise ValidationError("Please provide a valid email")

    is_valid, error = validate_password(password)
    if not is_valid:
        raise ValidationError(error)

    user_type = user_type or UserType.CANDIDATE
    if user_type == UserType.ADMIN:
        raise ValidationError("Admin accounts cannot be self-registered")

    if await get_user_by_email(db, normalized):
        raise ConflictError(DUPLICATE_EMAIL)

    user = User(
        name=name.strip(),
        email=normalized,
        password_hash=await hash_password_async(password),
        gender=gender,
        address=address.strip(),
        user_type=user_type,
        designation=designation.strip() if designation else None,
        is_active=True,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email
        await db.rollback()
        raise ConflictError(DUPLICATE_EMAIL)
    await db.refresh(user)

    logger.info(f"Registered {user.user_type.value} user {user.id} ({mask_email(user.email)})")

    return {**issue_tokens(user), "user": user_to_dict(user)}


@surface_db_errors()
async def login_user(
    db: AsyncSession,
    email: Optional[str],
    password: Optional[str],
) -> Dict[str, Any]:
    """
    Authenticate by email and password.

    Unknown email and wrong password fail with the same message. A disabled
    account is only reported once the password has matched.
    """
    require_fields({"Email": email, "Password": password})

    user = await get_user_by_email(db, email)
    if user is None:
        # Spend the same bcrypt work as a real account
        dummy = await run_in_threadpool(_dummy_password_hash, settings.bcrypt_rounds)
        await verify_password_async(password, dummy)
        raise UnauthorizedError(INVALID_CREDENTIALS)

    if not await verify_password_async(password, user.password_hash):
        logger.info(f"Failed login for user {user.id}")
        raise UnauthorizedError(INVALID_CREDENTIALS)

    if not user.is_active:
        raise AccountDisabledError()

    user.last_login_at = now()
    await db.commit()

    return {**issue_tokens(user), "user": user_to_dict(user)}


@surface_db_errors()
async def get_profile(db: AsyncSession, user_id: int) -> Dict[str, Any]:
    """Get the caller's own profile."""
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not user.is_active:
        raise AccountDisabledError()
    return {"user": user_to_dict(user)}
