"""
Job lifecycle service functions.

Create (single and bulk), read, update, publish/close/archive transitions,
permanent delete, applications and view counting. Counters on ``Job`` are
only changed with single-statement atomic updates.
"""

from typing import Any, Dict, List, Optional
from datetime import timedelta
import hashlib
import logging

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.jobs import JobCreate, JobUpdate
from core.errors import (
    ConflictError,
    DependencyFailure,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    require_fields,
    surface_db_errors,
)
from core.utils.datetime import ensure_aware, is_past, isoformat, now
from core.utils.formatting import unique_job_slug
from core.utils.validators import validate_url
from database.models.applications import Application
from database.models.companies import Company
from database.models.jobs import ApplyType, Job, JobSkill, JobStatus, JobView
from database.models.users import User, UserType

logger = logging.getLogger(__name__)

JOB_NOT_FOUND = "Job not found"
HR_ONLY = "Only HR users can perform this action"
EXTERNAL_URL_REQUIRED = "applyUrl is required for external jobs"
SALARY_RANGE_INVALID = "maxSalary must be greater than or equal to minSalary"
NOT_AVAILABLE = "Job is not available to apply"
ALREADY_APPLIED = "You have already applied to this job"

# Column values a caller may set through an update
UPDATABLE_FIELDS = (
    "title",
    "description",
    "location",
    "responsibilities",
    "requirements",
    "experience_level",
    "job_type",
    "work_mode",
    "min_salary",
    "max_salary",
    "salary_currency",
    "apply_type",
    "apply_url",
    "is_featured",
    "expiry_date",
    "is_active",
)
NULLABLE_FIELDS = {"experience_level", "min_salary", "max_salary", "apply_url", "expiry_date"}
REQUIRED_TEXT_FIELDS = ("title", "description", "location")


# ==================== Serialization ==================== #

def company_summary(company: Optional[Company]) -> Optional[Dict[str, Any]]:
    if company is None:
        return None
    return {
        "id": company.id,
        "name": company.name,
        "logo": company.logo,
        "website": company.website,
        "industry": company.industry,
    }


def poster_summary(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "userType": user.user_type.value,
    }


def serialize_job(job: Job) -> Dict[str, Any]:
    """API representation of a job with company and poster summaries."""
    return {
        "id": job.id,
        "title": job.title,
        "slug": job.slug,
        "description": job.description,
        "responsibilities": list(job.responsibilities or []),
        "requirements": list(job.requirements or []),
        "skills": job.skills,
        "experienceLevel": job.experience_level.value if job.experience_level else None,
        "jobType": job.job_type.value,
        "workMode": job.work_mode.value,
        "location": job.location,
        "minSalary": job.min_salary,
        "maxSalary": job.max_salary,
        "salaryCurrency": job.salary_currency,
        "applyType": job.apply_type.value,
        "applyUrl": job.apply_url,
        "companyId": job.company_id,
        "companyName": job.company_name,
        "company": company_summary(job.company),
        "postedBy": poster_summary(job.poster),
        "status": job.status.value,
        "isActive": job.is_active,
        "isApproved": job.is_approved,
        "isFeatured": job.is_featured,
        "expiryDate": isoformat(job.expiry_date),
        "isExpired": is_past(job.expiry_date),
        "totalViews": job.total_views,
        "totalApplications": job.total_applications,
        "closedAt": isoformat(job.closed_at),
        "archivedAt": isoformat(job.archived_at),
        "createdAt": isoformat(job.created_at),
        "updatedAt": isoformat(job.updated_at),
    }


def serialize_application(application: Application) -> Dict[str, Any]:
    candidate = application.candidate
    return {
        "id": application.id,
        "jobId": application.job_id,
        "status": application.status.value,
        "resumeUrl": application.resume_url,
        "coverLetter": application.cover_letter,
        "hrNotes": application.hr_notes,
        "isViewedByHr": application.is_viewed_by_hr,
        "appliedAt": isoformat(application.applied_at),
        "candidate": {
            "id": candidate.id,
            "name": candidate.name,
            "email": candidate.email,
            "designation": candidate.designation,
        } if candidate else None,
    }


# ==================== Helpers ==================== #

def is_admin(user: Optional[User]) -> bool:
    return user is not None and user.user_type == UserType.ADMIN


def can_manage(job: Job, user: Optional[User]) -> bool:
    """Owner or admin."""
    return user is not None and (job.posted_by == user.id or is_admin(user))


def ensure_can_manage(job: Job, user: User, message: str = "You are not authorized to update this job") -> None:
    if not can_manage(job, user):
        raise ForbiddenError(message)


def is_publicly_visible(job: Job) -> bool:
    return job.status in (JobStatus.PUBLISHED, JobStatus.CLOSED)


async def load_job(db: AsyncSession, job_id: int) -> Job:
    """Load a job with fresh column values (counters change through core UPDATEs)."""
    result = await db.execute(
        select(Job)
        .where(Job.id == job_id)
        .execution_options(populate_existing=True)
    )
    job = result.scalar_one_or_none()
    if job is None:
        raise NotFoundError(JOB_NOT_FOUND)
    return job


def check_salary_range(min_salary: Optional[int], max_salary: Optional[int]) -> None:
    if min_salary is not None and max_salary is not None and max_salary < min_salary:
        raise ValidationError(SALARY_RANGE_INVALID)


def resolve_apply_url(apply_type: ApplyType, apply_url: Optional[str]) -> Optional[str]:
    """Internal jobs never keep a URL; external jobs must have a valid one."""
    if apply_type == ApplyType.INTERNAL:
        return None
    apply_url = (apply_url or "").strip()
    if not apply_url:
        raise ValidationError(EXTERNAL_URL_REQUIRED)
    is_valid, _ = validate_url(apply_url)
    if not is_valid:
        raise ValidationError("applyUrl must be a valid URL")
    return apply_url


def schema_error_message(exc: SchemaValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(loc) for loc in error.get("loc", ()))
    return f"{location}: {error.get('msg')}" if location else str(error.get("msg"))


async def _build_job(
    db: AsyncSession,
    owner: User,
    payload: JobCreate,
    taken_slugs: set[str],
) -> Job:
    """Validate a creation payload and return an unsaved ``Job``."""
    require_fields({
        "title": payload.title,
        "description": payload.description,
        "location": payload.location,
    })

    apply_type = payload.apply_type or ApplyType.INTERNAL
    apply_url = resolve_apply_url(apply_type, payload.apply_url)
    check_salary_range(payload.min_salary, payload.max_salary)

    company = None
    if payload.company_id is not None:
        company = await db.get(Company, payload.company_id)
        if company is None:
            raise ValidationError("Invalid companyId")

    status = payload.status or JobStatus.PUBLISHED
    if status not in (JobStatus.DRAFT, JobStatus.PUBLISHED):
        raise ValidationError("New jobs must be draft or published")

    slug = unique_job_slug(payload.title)
    while slug in taken_slugs:
        slug = unique_job_slug(payload.title)
    taken_slugs.add(slug)

    job = Job(
        title=payload.title.strip(),
        slug=slug,
        description=payload.description.strip(),
        location=payload.location.strip(),
        responsibilities=payload.responsibilities or [],
        requirements=payload.requirements or [],
        experience_level=payload.experience_level,
        min_salary=payload.min_salary,
        max_salary=payload.max_salary,
        salary_currency=payload.salary_currency or "inr",
        apply_type=apply_type,
        apply_url=apply_url,
        company_id=company.id if company else None,
        company_name=(payload.company_name or "").strip() or (company.name if company else None),
        posted_by=owner.id,
        status=status,
        is_active=status == JobStatus.PUBLISHED,
        is_approved=True,
        is_featured=bool(payload.is_featured),
        expiry_date=ensure_aware(payload.expiry_date),
    )
    if payload.job_type is not None:
        job.job_type = payload.job_type
    if payload.work_mode is not None:
        job.work_mode = payload.work_mode
    job.set_skills(payload.skills or [])
    return job


def _ensure_hr(user: User) -> None:
    if user.user_type != UserType.HR:
        raise ForbiddenError(HR_ONLY)


async def _commit_new_jobs(db: AsyncSession, jobs: List[Job]) -> None:
    db.add_all(jobs)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A job with this slug already exists, please retry")


# ==================== Create ==================== #

@surface_db_errors()
async def create_job(db: AsyncSession, owner: User, payload: JobCreate) -> Dict[str, Any]:
    """
    Create a job posting owned by an HR user.

    Returns:
        Dictionary with the created job
    """
    _ensure_hr(owner)
    job = await _build_job(db, owner, payload, set())
    await _commit_new_jobs(db, [job])

    logger.info(f"Job {job.id} created by user {owner.id} ({job.status.value})")
    job = await load_job(db, job.id)
    return {"job": serialize_job(job)}


@surface_db_errors()
async def create_bulk_jobs(db: AsyncSession, owner: User, items: Any) -> Dict[str, Any]:
    """
    Create many jobs at once. Every item is validated before anything is
    written, and either all jobs are saved or none.
    """
    _ensure_hr(owner)
    if not isinstance(items, list) or not items:
        raise ValidationError("Request body must be a non-empty array")

    taken_slugs: set[str] = set()
    jobs: List[Job] = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Job {index} must be an object")
        try:
            payload = JobCreate.model_validate(item)
        except SchemaValidationError as e:
            raise ValidationError(f"Job {index}: {schema_error_message(e)}") from e

        if not all((getattr(payload, name) or "").strip() for name in REQUIRED_TEXT_FIELDS):
            raise ValidationError("title, description, and location are required")
        try:
            jobs.append(await _build_job(db, owner, payload, taken_slugs))
        except ValidationError as e:
            raise ValidationError(f"{e.message} (job {index}: {payload.title})") from e

    await _commit_new_jobs(db, jobs)
    logger.info(f"Bulk created {len(jobs)} jobs for user {owner.id}")

    created = [serialize_job(await load_job(db, job.id)) for job in jobs]
    return {"count": len(created), "jobs": created}


# ==================== Read ==================== #

async def _has_applied(db: AsyncSession, job: Job, viewer: Optional[User]) -> bool:
    if viewer is None or viewer.user_type != UserType.CANDIDATE:
        return False
    result = await db.execute(
        select(Application.id).where(
            Application.job_id == job.id,
            Application.candidate_id == viewer.id,
        )
    )
    return result.first() is not None


async def _job_detail(db: AsyncSession, job: Job, viewer: Optional[User]) -> Dict[str, Any]:
    # Drafts and archived jobs are only shown to their owner or an admin
    if not is_publicly_visible(job) and not can_manage(job, viewer):
        raise NotFoundError(JOB_NOT_FOUND)
    return {
        "job": serialize_job(job),
        "isApplied": await _has_applied(db, job, viewer),
    }


@surface_db_errors()
async def get_job(db: AsyncSession, job_id: int, viewer: Optional[User] = None) -> Dict[str, Any]:
    """Get a job by id. ``isApplied`` is set for a signed-in candidate."""
    job = await load_job(db, job_id)
    return await _job_detail(db, job, viewer)


@surface_db_errors()
async def get_job_by_slug(db: AsyncSession, slug: str, viewer: Optional[User] = None) -> Dict[str, Any]:
    """Get a job by its slug."""
    result = await db.execute(
        select(Job)
        .where(Job.slug == slug)
        .order_by(Job.id)
        .execution_options(populate_existing=True)
    )
    job = result.scalars().first()
    if job is None:
        raise NotFoundError(JOB_NOT_FOUND)
    return await _job_detail(db, job, viewer)


# ==================== Update & transitions ==================== #

@surface_db_errors()
async def update_job(
    db: AsyncSession,
    job_id: int,
    user: User,
    payload: JobUpdate,
) -> Dict[str, Any]:
    """
    Apply an allow-listed partial update.

    The external-apply and salary rules are checked against the merged state,
    and closed or archived jobs cannot be switched back on.
    """
    job = await load_job(db, job_id)
    ensure_can_manage(job, user)

    changes = payload.model_dump(exclude_unset=True)
    skills = changes.pop("skills", None)

    for name in REQUIRED_TEXT_FIELDS:
        if name in changes and not (changes[name] or "").strip():
            raise ValidationError(f"{name} is required")

    apply_type = changes.get("apply_type") or job.apply_type
    apply_url = changes["apply_url"] if "apply_url" in changes else job.apply_url
    changes["apply_url"] = resolve_apply_url(apply_type, apply_url)

    check_salary_range(
        changes["min_salary"] if "min_salary" in changes else job.min_salary,
        changes["max_salary"] if "max_salary" in changes else job.max_salary,
    )

    if changes.get("is_active") and not job.is_active:
        if job.status in (JobStatus.CLOSED, JobStatus.ARCHIVED):
            raise ValidationError(f"Job is {job.status.value} and cannot be re-activated")
        if job.status == JobStatus.DRAFT:
            raise ValidationError("Publish the draft to make it active")

    if "expiry_date" in changes:
        changes["expiry_date"] = ensure_aware(changes["expiry_date"])

    for name in UPDATABLE_FIELDS:
        if name not in changes:
            continue
        value = changes[name]
        if value is None and name not in NULLABLE_FIELDS:
            continue
        if isinstance(value, str) and name in REQUIRED_TEXT_FIELDS:
            value = value.strip()
        setattr(job, name, value)

    if skills is not None:
        job.set_skills(skills)

    await db.commit()
    logger.info(f"Job {job.id} updated by user {user.id}: {sorted(changes)}")

    job = await load_job(db, job.id)
    return {"job": serialize_job(job)}


@surface_db_errors()
async def publish_job(db: AsyncSession, job_id: int, user: User) -> Dict[str, Any]:
    """Move a draft to published. Publishing a published job is a no-op."""
    job = await load_job(db, job_id)
    ensure_can_manage(job, user)

    if job.status in (JobStatus.CLOSED, JobStatus.ARCHIVED):
        raise ValidationError(f"Job is {job.status.value} and cannot be published")
    if job.status == JobStatus.DRAFT:
        job.status = JobStatus.PUBLISHED
        job.is_active = True
        await db.commit()
        logger.info(f"Job {job.id} published by user {user.id}")
        job = await load_job(db, job.id)

    return {"job": serialize_job(job)}


@surface_db_errors()
async def close_job(db: AsyncSession, job_id: int, user: User) -> Dict[str, Any]:
    """Stop accepting applications. Closing a closed job is a no-op."""
    job = await load_job(db, job_id)
    ensure_can_manage(job, user)

    if job.status == JobStatus.ARCHIVED:
        raise ValidationError("Archived job cannot be closed")
    if job.status != JobStatus.CLOSED:
        job.status = JobStatus.CLOSED
        job.is_active = False
        job.closed_at = now()
        await db.commit()
        logger.info(f"Job {job.id} closed by user {user.id}")
        job = await load_job(db, job.id)

    return {"job": serialize_job(job)}


@surface_db_errors()
async def archive_job(db: AsyncSession, job_id: int, user: User) -> Dict[str, Any]:
    """Soft delete. There is no way back from archived."""
    job = await load_job(db, job_id)
    ensure_can_manage(job, user, "You are not authorized to delete this job")

    if job.status != JobStatus.ARCHIVED:
        job.status = JobStatus.ARCHIVED
        job.is_active = False
        job.archived_at = now()
        await db.commit()
        logger.info(f"Job {job.id} archived by user {user.id}")

    return {"jobId": job.id, "message": "Job archived successfully"}


@surface_db_errors()
async def delete_job_permanent(db: AsyncSession, job_id: int, user: User) -> Dict[str, Any]:
    """Remove a job and everything hanging off it. Admin only, irreversible."""
    if not is_admin(user):
        raise ForbiddenError("Only admin can permanently delete jobs")
    job = await load_job(db, job_id)

    await db.execute(delete(Application).where(Application.job_id == job.id))
    await db.execute(delete(JobView).where(JobView.job_id == job.id))
    await db.execute(delete(JobSkill).where(JobSkill.job_id == job.id))
    await db.execute(delete(Job).where(Job.id == job.id))
    await db.commit()
    db.expunge_all()

    logger.warning(f"Job {job_id} permanently deleted by admin {user.id}")
    return {"jobId": job_id}


# ==================== Applications ==================== #

@surface_db_errors()
async def apply_to_job(
    db: AsyncSession,
    job_id: int,
    candidate: User,
    resume_url: Optional[str],
    cover_letter: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Submit an application.

    The application insert and the ``total_applications`` increment are two
    separate statements; a failure between them leaves the counter short.
    """
    if candidate.user_type != UserType.CANDIDATE:
        raise ForbiddenError("Only candidates can apply")
    if not (resume_url or "").strip():
        raise ValidationError("Resume URL is required")

    job = await db.get(Job, job_id)
    if job is None or not job.is_active or not job.is_approved:
        raise ValidationError(NOT_AVAILABLE)
    if is_past(job.expiry_date):
        raise ValidationError("Job has expired")

    existing = await db.execute(
        select(Application.id).where(
            Application.job_id == job_id,
            Application.candidate_id == candidate.id,
        )
    )
    if existing.first() is not None:
        raise ConflictError(ALREADY_APPLIED)

    application = Application(
        job_id=job_id,
        candidate_id=candidate.id,
        resume_url=resume_url.strip(),
        cover_letter=cover_letter,
    )
    db.add(application)
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent duplicate caught by the unique constraint
        await db.rollback()
        raise ConflictError(ALREADY_APPLIED)

    await db.execute(
        update(Job)
        .where(Job.id == job_id)
        .values(total_applications=Job.total_applications + 1)
    )
    await db.commit()

    logger.info(f"User {candidate.id} applied to job {job_id}")
    return {
        "application": {
            "id": application.id,
            "status": application.status.value,
            "appliedAt": isoformat(application.applied_at),
        }
    }


@surface_db_errors()
async def list_applicants(db: AsyncSession, job_id: int, user: User) -> Dict[str, Any]:
    """Applications for a job, newest first. Owner or admin only."""
    job = await load_job(db, job_id)
    ensure_can_manage(job, user, "You are not authorized to view applicants")

    result = await db.execute(
        select(Application)
        .where(Application.job_id == job.id)
        .order_by(Application.applied_at.desc(), Application.id.desc())
    )
    applicants = [serialize_application(a) for a in result.scalars().all()]
    return {"applicants": applicants, "totalApplicants": len(applicants)}


@surface_db_errors()
async def get_applicants_count(db: AsyncSession, job_id: int) -> Dict[str, Any]:
    """Number of applications for a job (public)."""
    exists = await db.execute(select(Job.id).where(Job.id == job_id))
    if exists.first() is None:
        raise NotFoundError(JOB_NOT_FOUND)

    count = await db.scalar(
        select(func.count()).select_from(Application).where(Application.job_id == job_id)
    )
    return {"jobId": job_id, "applicantsCount": count or 0}


# ==================== Views ==================== #

def resolve_visitor_key(
    visitor_key: Optional[str],
    user: Optional[User],
    client_ip: Optional[str],
    user_agent: Optional[str],
) -> str:
    """
    Identify a viewer: an explicit key, else the signed-in user, else a
    hash of client address and user agent.
    """
    if visitor_key and visitor_key.strip():
        return visitor_key.strip()
    if user is not None:
        return f"user:{user.id}"
    fingerprint = f"{client_ip or ''}|{user_agent or ''}"
    return "anon:" + hashlib.sha256(fingerprint.encode("utf-8")).hexdigest()


def view_insert_for(dialect: str):
    """``INSERT ... ON CONFLICT DO NOTHING`` into job_views for a dialect name."""
    if dialect == "postgresql":
        return postgresql.insert(JobView.__table__).on_conflict_do_nothing(
            index_elements=["job_id", "visitor_key"]
        )
    if dialect == "sqlite":
        return sqlite.insert(JobView.__table__).on_conflict_do_nothing(
            index_elements=["job_id", "visitor_key"]
        )
    logger.error(f"View tracking does not support the {dialect} dialect")
    raise DependencyFailure("View tracking is unavailable right now")


@surface_db_errors()
async def record_job_view(
    db: AsyncSession,
    job_id: int,
    visitor_key: str,
    ttl_seconds: int,
) -> Dict[str, Any]:
    """
    Count a view at most once per visitor per TTL window.

    The dedup row is claimed atomically, either by inserting it or by
    re-arming an expired one, and only the request that claimed it bumps
    ``total_views``.
    """
    exists = await db.execute(select(Job.id).where(Job.id == job_id))
    if exists.first() is None:
        raise NotFoundError(JOB_NOT_FOUND)

    viewed_at = now()
    inserted = await db.execute(
        view_insert_for(db.bind.dialect.name).values(
            job_id=job_id, visitor_key=visitor_key, created_at=viewed_at
        )
    )
    counted = inserted.rowcount == 1

    if not counted:
        cutoff = viewed_at - timedelta(seconds=ttl_seconds)
        rearmed = await db.execute(
            update(JobView)
            .where(
                JobView.job_id == job_id,
                JobView.visitor_key == visitor_key,
                JobView.created_at < cutoff,
            )
            .values(created_at=viewed_at)
            .execution_options(synchronize_session=False)
        )
        counted = rearmed.rowcount == 1

    if counted:
        await db.execute(
            update(Job)
            .where(Job.id == job_id)
            .values(total_views=Job.total_views + 1)
        )
    await db.commit()

    return {"jobId": job_id, "counted": counted}


@surface_db_errors()
async def purge_expired_job_views(db: AsyncSession, ttl_seconds: int) -> Dict[str, Any]:
    """Delete view records older than the TTL window."""
    cutoff = now() - timedelta(seconds=ttl_seconds)
    result = await db.execute(
        delete(JobView)
        .where(JobView.created_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info(f"Purged {result.rowcount} expired job views")
    return {"deleted": result.rowcount}
