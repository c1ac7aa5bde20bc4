"""User and authentication request schemas."""

from typing import Optional
from pydantic import Field, field_validator

from api.schemas.common import CamelModel
from database.models.users import Gender, UserType


def _lower(v):
    if isinstance(v, str):
        return v.strip().lower()
    return v


class RegisterRequest(CamelModel):
    """
    Registration payload.

    Required fields are optional here so a missing one is reported as
    "<Field> is required" by the service rather than as a schema error.
    """

    name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    password: Optional[str] = Field(None, max_length=128)
    gender: Optional[Gender] = None
    address: Optional[str] = None
    user_type: Optional[UserType] = Field(None, description="candidate or hr")
    designation: Optional[str] = Field(None, max_length=200)

    @field_validator("gender", "user_type", mode="before")
    @classmethod
    def lower_enums(cls, v):
        return _lower(v) or None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: Optional[str] = None


class ResetPasswordRequest(CamelModel):
    email: Optional[str] = None
    token: Optional[str] = None
    new_password: Optional[str] = Field(None, max_length=128)


class ChangePasswordRequest(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = Field(None, max_length=128)
