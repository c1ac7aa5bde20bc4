"""
Jobs Module

Job postings, their normalized skill tags, and the per-visitor view records
used to deduplicate view counting.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    BigInteger,
    Integer,
    DateTime,
    Text,
    JSON,
    Enum as SQLEnum,
    Index,
    UniqueConstraint,
)
from database.engine import Base, BigIntPK
from database.models.users import User, enum_values
from database.models.companies import Company
from core.utils.datetime import now
from datetime import datetime
from enum import Enum as PyEnum


# ==================== Job Enums ===================== #
class JobStatus(str, PyEnum):
    """Job posting lifecycle state."""

    DRAFT = "draft"
    PUBLISHED = "published"
    CLOSED = "closed"
    ARCHIVED = "archived"  # soft-deleted, terminal


class JobType(str, PyEnum):
    """Job employment type."""

    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    FREELANCE = "freelance"
    TEMPORARY = "temporary"
    INTERNSHIP = "internship"
    APPRENTICESHIP = "apprenticeship"


class WorkMode(str, PyEnum):
    ONSITE = "onsite"
    REMOTE = "remote"
    HYBRID = "hybrid"
    WORK_FROM_HOME = "work from home"
    FIELD_WORK = "field work"


class ExperienceLevel(str, PyEnum):
    """Years of experience bracket."""

    ENTRY = "0-1"
    JUNIOR = "1-3"
    MID = "3-5"
    SENIOR = "5-8"
    LEAD = "8+"


class ApplyType(str, PyEnum):
    INTERNAL = "internal"  # apply through this platform
    EXTERNAL = "external"  # redirect to apply_url


def _enum_column(enum_cls: type[PyEnum]) -> SQLEnum:
    return SQLEnum(
        enum_cls, native_enum=False, length=50, values_callable=enum_values
    )


# ==================== Job ===================== #
class Job(Base):
    """
    Job posting.

    ``is_active`` is the public visibility switch and is kept in step with
    ``status``: only published jobs are active. ``total_views`` and
    ``total_applications`` are only ever changed through single-statement
    ``UPDATE ... SET x = x + 1``.
    """

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )

    # Basic info
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(400), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    responsibilities: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list
    )
    requirements: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # Classification
    experience_level: Mapped[ExperienceLevel | None] = mapped_column(
        _enum_column(ExperienceLevel)
    )
    job_type: Mapped[JobType] = mapped_column(
        _enum_column(JobType), nullable=False, default=JobType.FULL_TIME
    )
    work_mode: Mapped[WorkMode] = mapped_column(
        _enum_column(WorkMode), nullable=False, default=WorkMode.ONSITE
    )
    location: Mapped[str] = mapped_column(String(255), nullable=False)

    # Compensation
    min_salary: Mapped[int | None] = mapped_column(BigInteger)
    max_salary: Mapped[int | None] = mapped_column(BigInteger)
    salary_currency: Mapped[str] = mapped_column(
        String(10), default="inr", nullable=False
    )

    # How to apply
    apply_type: Mapped[ApplyType] = mapped_column(
        _enum_column(ApplyType), nullable=False, default=ApplyType.INTERNAL
    )
    apply_url: Mapped[str | None] = mapped_column(String(1000))

    # Ownership
    company_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("companies.id", ondelete="SET NULL"), index=True
    )
    company_name: Mapped[str | None] = mapped_column(String(255))
    posted_by: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # State
    status: Mapped[JobStatus] = mapped_column(
        _enum_column(JobStatus),
        nullable=False,
        default=JobStatus.PUBLISHED,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Counters
    total_views: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_applications: Mapped[int] = mapped_column(
        BigInteger, default=0, nullable=False
    )

    # Timestamps
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    # Relationships
    company: Mapped[Company | None] = relationship(Company, lazy="selectin")
    poster: Mapped[User] = relationship(User, lazy="selectin")
    skill_entries: Mapped[list["JobSkill"]] = relationship(
        "JobSkill",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobSkill.position",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("posted_by", "slug", name="uq_job_owner_slug"),
        Index("idx_job_public", "is_active", "is_approved", "created_at"),
    )

    @property
    def skills(self) -> list[str]:
        return [entry.name for entry in self.skill_entries]

    def set_skills(self, names: list[str]) -> None:
        """Replace the skill set, reusing existing rows so no row is deleted and re-added."""
        existing = list(self.skill_entries)
        for position, name in enumerate(names):
            if position < len(existing):
                existing[position].name = name
                existing[position].position = position
            else:
                self.skill_entries.append(JobSkill(name=name, position=position))
        for stale in existing[len(names):]:
            self.skill_entries.remove(stale)


class JobSkill(Base):
    """One normalized (lower-cased) skill tag of a job."""

    __tablename__ = "job_skills"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    job_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    job: Mapped[Job] = relationship(Job, back_populates="skill_entries")

    __table_args__ = (Index("idx_job_skill_job", "job_id", "name"),)


class JobView(Base):
    """
    Marks that a visitor has been counted for a job.

    A row older than the view TTL no longer blocks counting. It is re-armed
    in place by the next view from the same visitor.
    """

    __tablename__ = "job_views"

    id: Mapped[int] = mapped_column(
        BigIntPK, primary_key=True, nullable=False, autoincrement=True
    )
    job_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    visitor_key: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, index=True
    )

    __table_args__ = (
        UniqueConstraint("job_id", "visitor_key", name="uq_job_view_visitor"),
    )
