"""
Job posting endpoints.

Public listing, search and detail views; HR creation and management;
candidate applications and view counting. Static paths are declared before
``/{job_id}`` so they are matched first.
"""

from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user, get_optional_user, require_hr_user
from api.schemas.common import MAX_DB_INT, normalize_pagination, success_response
from api.schemas.jobs import ApplyRequest, JobCreate, JobUpdate, JobViewRequest
from api.services import job_search as search_service
from api.services import jobs as job_service
from core.config import settings
from core.middleware.logging import get_client_ip
from database.engine import get_db
from database.models.users import User

router = APIRouter(prefix="/jobs")


# ==================== Listing & search ==================== #

@router.get("", summary="List Jobs")
async def list_jobs(
    q: Optional[str] = Query(None, description="Text in title, description or company name"),
    location: Optional[str] = Query(None),
    skills: Optional[List[str]] = Query(None, description="Comma separated or repeated"),
    company_id: Optional[str] = Query(None, alias="companyId"),
    apply_type: Optional[str] = Query(None, alias="applyType"),
    job_type: Optional[str] = Query(None, alias="jobType"),
    work_mode: Optional[str] = Query(None, alias="workMode"),
    experience_level: Optional[str] = Query(None, alias="experienceLevel"),
    min_salary: Optional[str] = Query(None, alias="minSalary"),
    max_salary: Optional[str] = Query(None, alias="maxSalary"),
    is_featured: Optional[str] = Query(None, alias="isFeatured"),
    sort: Optional[str] = Query(None, description="date, recent, title or salary"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Public job search with filters, sorting and pagination."""
    criteria = search_service.JobSearchCriteria.from_query(
        q=q,
        location=location,
        skills=skills,
        company_id=company_id,
        apply_type=apply_type,
        job_type=job_type,
        work_mode=work_mode,
        experience_level=experience_level,
        min_salary=min_salary,
        max_salary=max_salary,
        is_featured=is_featured,
    )
    result = await search_service.search_jobs(
        db, criteria, normalize_pagination(page, limit), sort
    )
    return success_response(result, "Jobs fetched successfully")


@router.get("/search/suggest", summary="Search Suggestions")
async def suggest_jobs(
    q: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    result = await search_service.suggest_jobs(db, q)
    return success_response(result, "Suggestions fetched successfully")


@router.get("/featured", summary="Featured Jobs")
async def featured_jobs(
    limit: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    result = await search_service.featured_jobs(db, limit)
    return success_response(result, "Featured jobs fetched successfully")


@router.get("/my", summary="My Jobs")
async def my_jobs(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="active, expired, draft, published, closed or archived"),
    is_featured: Optional[str] = Query(None, alias="isFeatured"),
    current_user: User = Depends(require_hr_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's own postings with aggregate stats."""
    result = await search_service.list_my_jobs(
        db,
        current_user,
        page=page,
        limit=limit,
        q=q,
        status=status,
        is_featured=is_featured,
    )
    return success_response(result, "My jobs fetched successfully")


@router.get("/slug/{slug}", summary="Get Job By Slug")
async def get_job_by_slug(
    slug: str = Path(..., max_length=400),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.get_job_by_slug(db, slug, viewer)
    return success_response(result, "Job fetched successfully")


# ==================== Create ==================== #

@router.post("/create-jobs", summary="Create Job")
async def create_job(
    payload: JobCreate,
    current_user: User = Depends(require_hr_user),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.create_job(db, current_user, payload)
    return success_response(result, "Job created successfully")


@router.post("/create-bulkjobs", summary="Create Jobs In Bulk")
async def create_bulk_jobs(
    payload: Any = Body(None),
    current_user: User = Depends(require_hr_user),
    db: AsyncSession = Depends(get_db),
):
    """All-or-nothing creation from a JSON array of jobs."""
    result = await job_service.create_bulk_jobs(db, current_user, payload)
    return success_response(result, "Bulk jobs uploaded successfully")


# ==================== Single job ==================== #

@router.get("/{job_id}", summary="Get Job")
async def get_job(
    job_id: int = Path(..., ge=1, le=MAX_DB_INT, description="Job ID"),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.get_job(db, job_id, viewer)
    return success_response(result, "Job fetched successfully")


@router.patch("/{job_id}", summary="Update Job")
async def update_job(
    payload: JobUpdate,
    job_id: int = Path(..., ge=1, le=MAX_DB_INT, description="Job ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.update_job(db, job_id, current_user, payload)
    return success_response(result, "Job updated successfully")


@router.patch("/{job_id}/publish", summary="Publish Job")
async def publish_job(
    job_id: int = Path(..., ge=1, le=MAX_DB_INT, description="Job ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.publish_job(db, job_id, current_user)
    return success_response(result, "Job published successfully")


@router.patch("/{job_id}/close", summary="Close Job")
async def close_job(
    job_id: int = Path(..., ge=1, le=MAX_DB_INT, description="Job ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.close_job(db, job_id, current_user)
    return success_response(result, "Job closed successfully")


@router.delete("/{job_id}", summary="Archive Job")
async def archive_job(
    job_id: int = Path(..., ge=1, le=MAX_DB_INT, description="Job ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.archive_job(db, job_id, current_user)
    return success_response(result, "Job archived successfully")


@router.delete("/{job_id}/permanent", summary="Delete Job Permanently")
async def delete_job_permanent(
    job_id: int = Path(..., ge=1, le=MAX_DB_INT, description="Job ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.delete_job_permanent(db, job_id, current_user)
    return success_response(result, "Job permanently deleted")


# ==================== Applications & views ==================== #

@router.post("/{job_id}/apply", summary="Apply To Job")
async def apply_to_job(
    payload: ApplyRequest,
    job_id: int = Path(..., ge=1, le=MAX_DB_INT, description="Job ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.apply_to_job(
        db, job_id, current_user, payload.resume_url, payload.cover_letter
    )
    return success_response(result, "Job application submitted successfully")


@router.get("/{job_id}/applicants", summary="List Applicants")
async def list_applicants(
    job_id: int = Path(..., ge=1, le=MAX_DB_INT, description="Job ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.list_applicants(db, job_id, current_user)
    return success_response(result, "Applicants fetched successfully")


@router.get("/{job_id}/applicants-count", summary="Applicants Count")
async def applicants_count(
    job_id: int = Path(..., ge=1, le=MAX_DB_INT, description="Job ID"),
    db: AsyncSession = Depends(get_db),
):
    result = await job_service.get_applicants_count(db, job_id)
    return success_response(result, "Applicants count fetched successfully")


@router.post("/{job_id}/view", summary="Record Job View")
async def record_view(
    request: Request,
    job_id: int = Path(..., ge=1, le=MAX_DB_INT, description="Job ID"),
    payload: Optional[JobViewRequest] = Body(None),
    viewer: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """Count a view once per visitor per TTL window."""
    visitor_key = job_service.resolve_visitor_key(
        payload.visitor_key if payload else None,
        viewer,
        get_client_ip(request),
        request.headers.get("user-agent"),
    )
    result = await job_service.record_job_view(
        db, job_id, visitor_key, settings.job_view_ttl_seconds
    )
    return success_response(result, "Job view recorded successfully")
