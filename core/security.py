"""
Security utilities.

Provides bcrypt password hashing, JWT access/refresh tokens and single-use
password reset tokens.
"""

import hashlib
import hmac
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

DEFAULT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=15)
DEFAULT_REFRESH_TOKEN_EXPIRES = timedelta(days=7)
RESET_TOKEN_BYTES = 32

JWTPayload = Dict[str, Any]


# ==================== Passwords ==================== #

def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a plaintext password using bcrypt."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Check a plaintext password against a bcrypt hash."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


# ==================== JWT ==================== #

def _create_token(
    token_type: str,
    user_id: int,
    email: str,
    user_type: str,
    secret_key: str,
    expires_delta: timedelta,
    algorithm: str,
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "email": email,
        "userType": user_type,
        "type": token_type,
        "iat": now,
        "exp": now + expires_delta,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def create_access_token(
    user_id: int,
    email: str,
    user_type: str,
    secret_key: str,
    expires_delta: Optional[timedelta] = None,
    algorithm: str = "HS256",
) -> str:
    """Sign a short-lived access token for bearer use."""
    return _create_token(
        ACCESS_TOKEN_TYPE,
        user_id,
        email,
        user_type,
        secret_key,
        expires_delta or DEFAULT_ACCESS_TOKEN_EXPIRES,
        algorithm,
    )


def create_refresh_token(
    user_id: int,
    email: str,
    user_type: str,
    secret_key: str,
    expires_delta: Optional[timedelta] = None,
    algorithm: str = "HS256",
) -> str:
    """Sign a longer-lived refresh token. Use a secret distinct from the access one."""
    return _create_token(
        REFRESH_TOKEN_TYPE,
        user_id,
        email,
        user_type,
        secret_key,
        expires_delta or DEFAULT_REFRESH_TOKEN_EXPIRES,
        algorithm,
    )


def verify_jwt_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
    expected_type: Optional[str] = None,
) -> JWTPayload:
    """
    Verify signature and expiry of a token and return its claims.

    Raises:
        jwt.ExpiredSignatureError: token expired
        jwt.InvalidTokenError: bad signature, malformed token or wrong type
    """
    payload = jwt.decode(
        token,
        secret_key,
        algorithms=[algorithm],
        options={"require": ["exp", "iat"]},
    )
    if expected_type and payload.get("type") != expected_type:
        raise jwt.InvalidTokenError("Unexpected token type")
    return payload


def create_token_pair(
    user_id: int,
    email: str,
    user_type: str,
    access_secret: str,
    refresh_secret: str,
    access_token_expires: Optional[timedelta] = None,
    refresh_token_expires: Optional[timedelta] = None,
    algorithm: str = "HS256",
) -> Dict[str, str]:
    """Issue an access + refresh token pair for a user."""
    return {
        "accessToken": create_access_token(
            user_id,
            email,
            user_type,
            access_secret,
            expires_delta=access_token_expires,
            algorithm=algorithm,
        ),
        "refreshToken": create_refresh_token(
            user_id,
            email,
            user_type,
            refresh_secret,
            expires_delta=refresh_token_expires,
            algorithm=algorithm,
        ),
    }


# ==================== Password reset tokens ==================== #

@dataclass(frozen=True)
class ResetToken:
    """A freshly generated reset token. Only ``token_hash`` may be persisted."""

    raw_token: str
    token_hash: str
    expires_at: datetime


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_reset_token(ttl_minutes: int = 15) -> ResetToken:
    """Generate a 256-bit random reset token with its hash and expiry."""
    raw_token = secrets.token_hex(RESET_TOKEN_BYTES)
    return ResetToken(
        raw_token=raw_token,
        token_hash=hash_reset_token(raw_token),
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes),
    )


def verify_reset_token(stored_hash: Optional[str], candidate_raw: Optional[str]) -> bool:
    """Constant-time comparison of a candidate raw token against the stored hash."""
    if not stored_hash or not candidate_raw:
        return False
    return hmac.compare_digest(stored_hash, hash_reset_token(candidate_raw))
