"""
Account endpoints.

Provides:
- Registration and email/password login
- Refresh-token rotation through an HttpOnly cookie
- Logout
- Profile
- Forgot / reset / change password
"""

import logging
from typing import Optional
from fastapi import APIRouter, Cookie, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user, get_email_service
from api.schemas.common import success_response
from api.schemas.users import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from api.services import auth as auth_service
from api.services import users as user_service
from core.config import settings
from core.integrations.email import EmailService
from database.engine import get_db
from database.models.users import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user")


# ==================== Cookie helpers ==================== #

def set_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=refresh_token,
        max_age=settings.refresh_cookie_max_age,
        path="/",
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite="strict",
    )


def clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path="/",
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite="strict",
    )


# ==================== Endpoints ==================== #

@router.post("/register", summary="Register")
async def register(
    payload: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Create a candidate or HR account and start a session."""
    result = await user_service.register_user(
        db,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        gender=payload.gender,
        address=payload.address,
        user_type=payload.user_type,
        designation=payload.designation,
    )
    set_refresh_cookie(response, result["refreshToken"])
    return success_response(result, "Registration successful")


@router.post("/login", summary="Login")
async def login(
    payload: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Authenticate with email and password."""
    result = await user_service.login_user(db, payload.email, payload.password)
    set_refresh_cookie(response, result["refreshToken"])
    return success_response(result, "Login successful")


@router.post("/refresh-token", summary="Refresh Access Token")
async def refresh_token(
    response: Response,
    db: AsyncSession = Depends(get_db),
    refresh_cookie: Optional[str] = Cookie(None, alias=settings.refresh_cookie_name),
):
    """Issue a new access token and rotate the refresh cookie."""
    result = await auth_service.refresh_access_token(db, refresh_cookie)
    set_refresh_cookie(response, result.pop("refreshToken"))
    return success_response(result, "Access token refreshed")


@router.post("/logout", summary="Logout")
async def logout(
    response: Response,
    refresh_cookie: Optional[str] = Cookie(None, alias=settings.refresh_cookie_name),
):
    """Clear the refresh cookie. Safe to call repeatedly."""
    result = await auth_service.logout_user(refresh_cookie)
    clear_refresh_cookie(response)
    return success_response(result, "Logout successful")


@router.get("/profile", summary="Get Profile")
async def profile(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await user_service.get_profile(db, current_user.id)
    return success_response(result, "User profile fetched")


@router.post("/forgotpassword", summary="Forgot Password")
async def forgot_password(
    payload: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    mailer: EmailService = Depends(get_email_service),
):
    """Always answers with the same message whether or not the account exists."""
    result = await auth_service.forgot_password(db, payload.email, mailer)
    return success_response(result, "Request processed")


@router.post("/resetpassword", summary="Reset Password")
async def reset_password(
    payload: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await auth_service.reset_password(
        db, payload.email, payload.token, payload.new_password
    )
    return success_response(result, "Password reset successful")


@router.patch("/changepassword", summary="Change Password")
async def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await auth_service.change_password(
        db, current_user.id, payload.current_password, payload.new_password
    )
    return success_response(result, "Password changed successfully")
