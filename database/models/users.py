from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    DateTime,
    Text,
    Enum as SQLEnum,
)
from database.engine import Base, BigIntPK
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


# ==================== User Type ===================== #
class UserType(str, PyEnum):
    CANDIDATE = "candidate"  # job seeker, may apply to jobs
    HR = "hr"  # employer side, creates and manages postings
    ADMIN = "admin"  # platform admin, may mutate any job


class Gender(str, PyEnum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


def enum_values(enum_cls: type[PyEnum]) -> list[str]:
    """Persist enum values rather than member names."""
    return [member.value for member in enum_cls]


class User(Base):
    """
    User identity and credentials.

    Email is stored trimmed and lower-cased, so the unique index makes it
    case-insensitive. Only a bcrypt hash of the password and a SHA-256 hash of
    a pending reset token are ever stored.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    gender: Mapped[Gender] = mapped_column(
        SQLEnum(Gender, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
    )
    address: Mapped[str] = mapped_column(Text, nullable=False)
    user_type: Mapped[UserType] = mapped_column(
        SQLEnum(UserType, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=UserType.CANDIDATE,
    )
    designation: Mapped[str | None] = mapped_column(String(200))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Password reset (single use)
    password_reset_token_hash: Mapped[str | None] = mapped_column(String(64))
    password_reset_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    password_reset_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    # Timestamps
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    def clear_reset_token(self) -> None:
        self.password_reset_token_hash = None
        self.password_reset_expires_at = None
