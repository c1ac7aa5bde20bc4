"""
Application Models

A candidate's application to an internal-apply job. One per (job, candidate).
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    DateTime,
    Text,
    Enum as SQLEnum,
    UniqueConstraint,
)
from database.engine import Base, BigIntPK
from database.models.users import User, enum_values
from database.models.jobs import Job
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


class ApplicationStatus(str, PyEnum):
    """Hiring pipeline status of an application."""

    APPLIED = "applied"
    REVIEWED = "reviewed"
    SHORTLISTED = "shortlisted"
    REJECTED = "rejected"
    SELECTED = "selected"


class Application(Base):
    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    job_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    candidate_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    resume_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    cover_letter: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(
            ApplicationStatus,
            native_enum=False,
            length=50,
            values_callable=enum_values,
        ),
        nullable=False,
        default=ApplicationStatus.APPLIED,
        index=True,
    )
    hr_notes: Mapped[str | None] = mapped_column(Text)
    is_viewed_by_hr: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # Timestamps
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    # Relationships
    job: Mapped[Job] = relationship(Job, lazy="selectin")
    candidate: Mapped[User] = relationship(User, lazy="selectin")

    __table_args__ = (
        UniqueConstraint("job_id", "candidate_id", name="uq_application_job_candidate"),
    )
