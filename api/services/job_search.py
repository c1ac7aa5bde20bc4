"""
Job query engine.

Builds the filter, sort and pagination for the public listing, featured
jobs, search suggestions and an HR user's own postings. Every ordering ends
with an ``id`` tie-break so a page is identical across repeated calls.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
import logging
import math

from sqlalchemy import and_, case, false, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import (
    MAX_DB_INT,
    OWNER_MAX_LIMIT,
    PUBLIC_MAX_LIMIT,
    Pagination,
    normalize_pagination,
    paginated,
)
from api.schemas.jobs import normalize_skills
from api.services.jobs import serialize_job
from core.errors import ValidationError, surface_db_errors
from core.utils.datetime import now
from core.utils.formatting import escape_like
from database.models.jobs import (
    ApplyType,
    ExperienceLevel,
    Job,
    JobSkill,
    JobStatus,
    JobType,
    WorkMode,
)
from database.models.users import User

logger = logging.getLogger(__name__)

DEFAULT_SORT = "date"
FEATURED_DEFAULT_LIMIT = 6
SUGGEST_LIMIT = 10

SORTS = {
    "date": (Job.created_at.desc(), Job.id.desc()),
    "recent": (Job.created_at.desc(), Job.id.desc()),
    "title": (Job.title.asc(), Job.id.asc()),
    "salary": (Job.min_salary.desc().nulls_last(), Job.id.desc()),
}

MY_JOB_STATUSES = {"active", "expired"} | {status.value for status in JobStatus}


@dataclass
class JobSearchCriteria:
    """Optional, AND-combined filters for the public listing."""

    q: Optional[str] = None
    location: Optional[str] = None
    skills: List[str] = field(default_factory=list)
    company_id: Optional[int] = None
    apply_type: Optional[str] = None
    job_type: Optional[str] = None
    work_mode: Optional[str] = None
    experience_level: Optional[str] = None
    min_salary: Optional[float] = None
    max_salary: Optional[float] = None
    is_featured: Optional[bool] = None

    @classmethod
    def from_query(
        cls,
        q: Optional[str] = None,
        location: Optional[str] = None,
        skills: Optional[Sequence[str]] = None,
        company_id: Optional[str] = None,
        apply_type: Optional[str] = None,
        job_type: Optional[str] = None,
        work_mode: Optional[str] = None,
        experience_level: Optional[str] = None,
        min_salary: Optional[str] = None,
        max_salary: Optional[str] = None,
        is_featured: Optional[str] = None,
    ) -> "JobSearchCriteria":
        """Build criteria from raw query-string values."""
        return cls(
            q=_blank_to_none(q),
            location=_blank_to_none(location),
            skills=normalize_skills(",".join(skills) if skills else None),
            company_id=_parse_company_id(company_id),
            apply_type=_blank_to_none(apply_type),
            job_type=_blank_to_none(job_type),
            work_mode=_blank_to_none(work_mode),
            experience_level=_blank_to_none(experience_level),
            min_salary=_parse_salary("minSalary", min_salary),
            max_salary=_parse_salary("maxSalary", max_salary),
            is_featured=parse_bool(is_featured),
        )


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _parse_company_id(value: Optional[str]) -> Optional[int]:
    value = _blank_to_none(value)
    if value is None:
        return None
    try:
        company_id = int(value)
    except ValueError:
        raise ValidationError("Invalid companyId")
    if not 1 <= company_id <= MAX_DB_INT:
        raise ValidationError("Invalid companyId")
    return company_id


def _parse_salary(name: str, value: Optional[str]) -> Optional[float]:
    value = _blank_to_none(value)
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be a number")
    return number


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """``"true"``/``"false"`` (any case); anything else means no filter."""
    value = _blank_to_none(value)
    if value is None:
        return None
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


def contains(column, term: str):
    """Case-insensitive substring match."""
    return column.ilike(f"%{escape_like(term)}%", escape="\\")


def enum_equals(column, enum_cls: type[Enum], value: str):
    """Case-insensitive exact match; an unknown value matches nothing."""
    try:
        member = enum_cls(value.strip().lower())
    except ValueError:
        return false()
    return column == member


def public_base_filters() -> list:
    return [Job.is_active.is_(True), Job.is_approved.is_(True)]


def not_expired(at=None):
    """A job without an expiry date never expires."""
    at = at or now()
    return or_(Job.expiry_date.is_(None), Job.expiry_date >= at)


def build_job_filters(criteria: JobSearchCriteria) -> list:
    """Translate criteria into SQLAlchemy conditions, base predicate first."""
    conditions = public_base_filters()

    if criteria.is_featured is not None:
        conditions.append(Job.is_featured.is_(criteria.is_featured))

    if criteria.q:
        conditions.append(
            or_(
                contains(Job.title, criteria.q),
                contains(Job.description, criteria.q),
                contains(Job.company_name, criteria.q),
            )
        )

    if criteria.location:
        conditions.append(contains(Job.location, criteria.location))

    if criteria.skills:
        conditions.append(
            Job.id.in_(
                select(JobSkill.job_id).where(JobSkill.name.in_(criteria.skills))
            )
        )

    if criteria.company_id is not None:
        conditions.append(Job.company_id == criteria.company_id)
    if criteria.apply_type:
        conditions.append(enum_equals(Job.apply_type, ApplyType, criteria.apply_type))
    if criteria.job_type:
        conditions.append(enum_equals(Job.job_type, JobType, criteria.job_type))
    if criteria.work_mode:
        conditions.append(enum_equals(Job.work_mode, WorkMode, criteria.work_mode))
    if criteria.experience_level:
        conditions.append(
            enum_equals(Job.experience_level, ExperienceLevel, criteria.experience_level)
        )

    # Salary ranges overlap; an open job bound is unbounded on that side
    if criteria.min_salary is not None:
        conditions.append(
            or_(Job.max_salary.is_(None), Job.max_salary >= criteria.min_salary)
        )
    if criteria.max_salary is not None:
        conditions.append(
            or_(Job.min_salary.is_(None), Job.min_salary <= criteria.max_salary)
        )

    return conditions


def resolve_sort(sort: Optional[str]) -> tuple:
    """Allow-listed ordering. Unknown keys fall back to newest first."""
    key = (sort or DEFAULT_SORT).strip().lower()
    return SORTS.get(key, SORTS[DEFAULT_SORT])


async def _page(
    db: AsyncSession,
    conditions: list,
    ordering: tuple,
    pagination: Pagination,
) -> tuple[list[Job], int]:
    total = await db.scalar(select(func.count()).select_from(Job).where(*conditions))
    result = await db.execute(
        select(Job)
        .where(*conditions)
        .order_by(*ordering)
        .offset(pagination.offset)
        .limit(pagination.limit)
    )
    return list(result.scalars().all()), total or 0


@surface_db_errors()
async def search_jobs(
    db: AsyncSession,
    criteria: JobSearchCriteria,
    pagination: Pagination,
    sort: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Public job listing.

    Returns:
        Dictionary with results, total, page, limit and pages
    """
    jobs, total = await _page(db, build_job_filters(criteria), resolve_sort(sort), pagination)
    return paginated([serialize_job(job) for job in jobs], total, pagination)


@surface_db_errors()
async def featured_jobs(db: AsyncSession, limit: Any = None) -> Dict[str, Any]:
    """Newest featured jobs that are public and not expired."""
    pagination = normalize_pagination(
        1, limit, max_limit=PUBLIC_MAX_LIMIT, default_limit=FEATURED_DEFAULT_LIMIT
    )
    result = await db.execute(
        select(Job)
        .where(*public_base_filters(), Job.is_featured.is_(True), not_expired())
        .order_by(*SORTS["date"])
        .limit(pagination.limit)
    )
    return {"featured": [serialize_job(job) for job in result.scalars().all()]}


@surface_db_errors()
async def suggest_jobs(db: AsyncSession, q: Optional[str]) -> Dict[str, Any]:
    """
    Autocomplete for the search box.

    Looks at up to 10 public jobs whose title or a skill contains ``q`` and
    returns the distinct matching titles and skills.
    """
    term = _blank_to_none(q)
    if term is None:
        return {"suggestions": {"titles": [], "skills": []}}

    skill_match = select(JobSkill.job_id).where(contains(JobSkill.name, term))
    result = await db.execute(
        select(Job)
        .where(
            *public_base_filters(),
            or_(contains(Job.title, term), Job.id.in_(skill_match)),
        )
        .order_by(*SORTS["date"])
        .limit(SUGGEST_LIMIT)
    )
    jobs = result.scalars().all()

    needle = term.lower()
    titles: dict[str, None] = {}
    skills: dict[str, None] = {}
    for job in jobs:
        if needle in job.title.lower():
            titles.setdefault(job.title, None)
        for skill in job.skills:
            if needle in skill:
                skills.setdefault(skill, None)

    return {"suggestions": {"titles": list(titles), "skills": list(skills)}}


def _my_jobs_filters(
    owner: User,
    q: Optional[str],
    status: Optional[str],
    is_featured: Optional[bool],
) -> list:
    conditions = [Job.posted_by == owner.id]

    if q:
        conditions.append(contains(Job.title, q))
    if is_featured is not None:
        conditions.append(Job.is_featured.is_(is_featured))

    if status == "active":
        conditions.extend(public_base_filters())
        conditions.append(not_expired())
    elif status == "expired":
        conditions.append(and_(Job.expiry_date.is_not(None), Job.expiry_date < now()))
    elif status:
        conditions.append(Job.status == JobStatus(status))

    return conditions


async def owner_job_stats(db: AsyncSession, owner: User) -> Dict[str, Any]:
    """Aggregate counters over all of an owner's jobs, ignoring filters."""
    by_status = await db.execute(
        select(Job.status, func.count())
        .where(Job.posted_by == owner.id)
        .group_by(Job.status)
    )
    counts = {status.value: 0 for status in JobStatus}
    for status, count in by_status.all():
        counts[status.value] = count

    totals = await db.execute(
        select(
            func.count(),
            func.coalesce(func.sum(case((Job.is_active.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(Job.total_views), 0),
            func.coalesce(func.sum(Job.total_applications), 0),
        ).where(Job.posted_by == owner.id)
    )
    total, active, views, applications = totals.one()

    return {
        "totalJobs": total,
        "activeJobs": int(active),
        "byStatus": counts,
        "totalViews": int(views),
        "totalApplications": int(applications),
    }


@surface_db_errors()
async def list_my_jobs(
    db: AsyncSession,
    owner: User,
    page: Any = None,
    limit: Any = None,
    q: Optional[str] = None,
    status: Optional[str] = None,
    is_featured: Optional[str] = None,
) -> Dict[str, Any]:
    """
    An HR user's own postings, newest first, with aggregate stats.

    ``status`` is one of active, expired, draft, published, closed or
    archived. ``limit`` may go up to 5000 so a client can fetch everything.
    """
    status = (_blank_to_none(status) or "").lower() or None
    if status is not None and status not in MY_JOB_STATUSES:
        raise ValidationError(f"Invalid status filter: {status}")

    pagination = normalize_pagination(page, limit, max_limit=OWNER_MAX_LIMIT)
    conditions = _my_jobs_filters(owner, _blank_to_none(q), status, parse_bool(is_featured))
    jobs, total = await _page(db, conditions, SORTS["date"], pagination)

    return {
        **paginated([serialize_job(job) for job in jobs], total, pagination),
        "stats": await owner_job_stats(db, owner),
    }
