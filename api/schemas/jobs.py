"""Job, application and company request schemas."""

from datetime import datetime
from typing import Optional, Union
from pydantic import Field, field_validator

from api.schemas.common import MAX_DB_INT, CamelModel
from database.models.companies import CompanySize
from database.models.jobs import (
    ApplyType,
    ExperienceLevel,
    JobStatus,
    JobType,
    WorkMode,
)

MAX_SKILL_LENGTH = 100


def normalize_skills(value) -> list[str]:
    """
    Normalize skills given as a list or a comma separated string.

    Names are trimmed and lower-cased. Blanks and duplicates are dropped,
    first occurrence order is kept.
    """
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else value
    seen: dict[str, None] = {}
    for item in items:
        name = str(item).strip().lower()
        if name:
            seen.setdefault(name, None)
    return list(seen)


def _clean_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    return [str(item).strip() for item in value if str(item).strip()]


class JobFields(CamelModel):
    """Fields shared by job creation and update. Unknown keys are dropped."""

    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    responsibilities: Optional[list[str]] = None
    requirements: Optional[list[str]] = None
    skills: Optional[Union[list[str], str]] = None
    experience_level: Optional[ExperienceLevel] = None
    job_type: Optional[JobType] = None
    work_mode: Optional[WorkMode] = None
    min_salary: Optional[int] = Field(None, ge=0, le=MAX_DB_INT)
    max_salary: Optional[int] = Field(None, ge=0, le=MAX_DB_INT)
    salary_currency: Optional[str] = Field(None, max_length=10)
    apply_type: Optional[ApplyType] = None
    apply_url: Optional[str] = Field(None, max_length=1000)
    is_featured: Optional[bool] = None
    expiry_date: Optional[datetime] = None

    @field_validator(
        "experience_level", "job_type", "work_mode", "apply_type", mode="before"
    )
    @classmethod
    def lower_enums(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v

    @field_validator("responsibilities", "requirements", mode="before")
    @classmethod
    def clean_lists(cls, v):
        return None if v is None else _clean_list(v)

    @field_validator("skills", mode="after")
    @classmethod
    def clean_skills(cls, v):
        if v is None:
            return None
        skills = normalize_skills(v)
        if any(len(name) > MAX_SKILL_LENGTH for name in skills):
            raise ValueError(f"Each skill must be at most {MAX_SKILL_LENGTH} characters")
        return skills

    @field_validator("salary_currency", mode="before")
    @classmethod
    def lower_currency(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


class JobCreate(JobFields):
    """Payload for creating one job."""

    company_id: Optional[int] = Field(None, ge=1, le=MAX_DB_INT)
    company_name: Optional[str] = Field(None, max_length=255)
    status: Optional[JobStatus] = Field(
        None, description="draft or published (default)"
    )

    @field_validator("status", mode="before")
    @classmethod
    def lower_status(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


class JobUpdate(JobFields):
    """
    Allow-listed update payload.

    Ownership, slug, status, counters and approval are not part of it, so
    they cannot be mass-assigned.
    """

    is_active: Optional[bool] = None


class ApplyRequest(CamelModel):
    resume_url: Optional[str] = Field(None, max_length=1000)
    cover_letter: Optional[str] = None


class JobViewRequest(CamelModel):
    visitor_key: Optional[str] = Field(None, max_length=200)


class CompanyCreate(CamelModel):
    name: Optional[str] = Field(None, max_length=255)
    logo: Optional[str] = Field(None, max_length=500)
    website: Optional[str] = Field(None, max_length=500)
    industry: Optional[str] = Field(None, max_length=200)
    size: Optional[CompanySize] = None
    headquarters: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
