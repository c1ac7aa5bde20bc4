"""
Companies Module

Directory of employers. A company is created by an HR user and can be
referenced by many jobs.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    Text,
    Enum as SQLEnum,
)
from database.engine import Base, BigIntPK
from database.models.users import User, enum_values
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


class CompanySize(str, PyEnum):
    """Headcount bracket."""

    XS = "1-10"
    S = "11-50"
    M = "51-200"
    L = "201-500"
    XL = "500+"


class Company(Base):
    """Employer directory entry. Name is globally unique (case-insensitive)."""

    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Lower-cased copy of name backing the uniqueness rule
    name_key: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    logo: Mapped[str | None] = mapped_column(String(500))
    website: Mapped[str | None] = mapped_column(String(500))
    industry: Mapped[str | None] = mapped_column(String(200))
    size: Mapped[CompanySize | None] = mapped_column(
        SQLEnum(CompanySize, native_enum=False, length=20, values_callable=enum_values)
    )
    headquarters: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    creator: Mapped[User | None] = relationship(User, lazy="selectin")
