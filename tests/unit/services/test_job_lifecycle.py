"""
Tests for job lifecycle services: create, bulk create, read, update,
publish/close/archive, permanent delete and applications.
"""

import re
import pytest
from datetime import timedelta
from sqlalchemy import func, select

from api.schemas.jobs import CompanyCreate, JobCreate, JobUpdate
from api.services import companies as company_service
from api.services import jobs as job_service
from core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from core.utils.datetime import now
from database.models.applications import Application
from database.models.jobs import Job, JobSkill

RESUME = "https://files.jobboard.dev/resume.pdf"


def job_payload(**fields) -> JobCreate:
    data = {"title": "Backend Engineer", "description": "Build APIs", "location": "Berlin"}
    data.update(fields)
    return JobCreate(**data)


async def count(db, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


class TestCreateJob:

    async def test_defaults(self, db, hr_user):
        result = await job_service.create_job(db, hr_user, job_payload(skills="Python, SQL, python"))
        job = result["job"]

        assert re.fullmatch(r"backend-engineer-\d+-\d{4}", job["slug"])
        assert job["status"] == "published"
        assert job["isActive"] is True
        assert job["isApproved"] is True
        assert job["applyType"] == "internal"
        assert job["applyUrl"] is None
        assert job["salaryCurrency"] == "inr"
        assert job["skills"] == ["python", "sql"]
        assert job["totalViews"] == job["totalApplications"] == 0
        assert job["postedBy"]["id"] == hr_user.id

    async def test_only_hr_can_create(self, db, candidate, admin_user):
        for user in (candidate, admin_user):
            with pytest.raises(ForbiddenError, match="Only HR users can perform this action"):
                await job_service.create_job(db, user, job_payload())

    @pytest.mark.parametrize("field", ["title", "description", "location"])
    async def test_required_fields(self, db, hr_user, field):
        with pytest.raises(ValidationError, match=f"{field} is required"):
            await job_service.create_job(db, hr_user, job_payload(**{field: " "}))

    async def test_external_requires_url(self, db, hr_user):
        with pytest.raises(ValidationError, match="applyUrl is required for external jobs"):
            await job_service.create_job(db, hr_user, job_payload(apply_type="external"))

    async def test_external_url_must_be_valid(self, db, hr_user):
        with pytest.raises(ValidationError, match="applyUrl must be a valid URL"):
            await job_service.create_job(
                db, hr_user, job_payload(apply_type="external", apply_url="careers page")
            )

    async def test_internal_drops_url(self, db, hr_user):
        result = await job_service.create_job(
            db, hr_user, job_payload(apply_type="internal", apply_url="https://acme.io/apply")
        )
        assert result["job"]["applyUrl"] is None

    async def test_external_with_url(self, db, hr_user):
        result = await job_service.create_job(
            db, hr_user, job_payload(apply_type="external", apply_url="https://acme.io/apply")
        )
        assert result["job"]["applyType"] == "external"
        assert result["job"]["applyUrl"] == "https://acme.io/apply"

    async def test_salary_range(self, db, hr_user):
        with pytest.raises(ValidationError, match="maxSalary must be greater than or equal to minSalary"):
            await job_service.create_job(db, hr_user, job_payload(min_salary=500, max_salary=100))

    async def test_unknown_company(self, db, hr_user):
        with pytest.raises(ValidationError, match="Invalid companyId"):
            await job_service.create_job(db, hr_user, job_payload(company_id=404))

    async def test_company_name_from_company(self, db, hr_user):
        company = await company_service.create_company(db, hr_user, CompanyCreate(name="Acme"))
        result = await job_service.create_job(
            db, hr_user, job_payload(company_id=company["company"]["id"])
        )

        assert result["job"]["companyName"] == "Acme"
        assert result["job"]["company"]["name"] == "Acme"

    async def test_draft(self, db, hr_user):
        result = await job_service.create_job(db, hr_user, job_payload(status="draft"))
        assert result["job"]["status"] == "draft"
        assert result["job"]["isActive"] is False

    async def test_cannot_create_closed(self, db, hr_user):
        with pytest.raises(ValidationError, match="New jobs must be draft or published"):
            await job_service.create_job(db, hr_user, job_payload(status="closed"))

    async def test_slugs_unique(self, db, hr_user):
        first = await job_service.create_job(db, hr_user, job_payload())
        second = await job_service.create_job(db, hr_user, job_payload())
        assert first["job"]["slug"] != second["job"]["slug"]


class TestBulkCreate:

    async def test_creates_all(self, db, hr_user):
        result = await job_service.create_bulk_jobs(db, hr_user, [
            {"title": "A", "description": "a", "location": "X"},
            {"title": "B", "description": "b", "location": "Y", "skills": ["Go"]},
        ])

        assert result["count"] == 2
        assert [job["title"] for job in result["jobs"]] == ["A", "B"]
        assert result["jobs"][1]["skills"] == ["go"]
        assert await count(db, Job) == 2

    @pytest.mark.parametrize("body", [None, [], {"title": "A"}, "jobs"])
    async def test_body_must_be_non_empty_array(self, db, hr_user, body):
        with pytest.raises(ValidationError, match="Request body must be a non-empty array"):
            await job_service.create_bulk_jobs(db, hr_user, body)

    async def test_all_or_nothing(self, db, hr_user):
        with pytest.raises(ValidationError, match="title, description, and location are required"):
            await job_service.create_bulk_jobs(db, hr_user, [
                {"title": "A", "description": "a", "location": "X"},
                {"title": "B", "description": "b"},
            ])
        assert await count(db, Job) == 0

    async def test_business_rule_failure_names_the_item(self, db, hr_user):
        with pytest.raises(ValidationError, match=r"applyUrl is required for external jobs \(job 2: B\)"):
            await job_service.create_bulk_jobs(db, hr_user, [
                {"title": "A", "description": "a", "location": "X"},
                {"title": "B", "description": "b", "location": "Y", "applyType": "external"},
            ])
        assert await count(db, Job) == 0

    async def test_schema_failure(self, db, hr_user):
        with pytest.raises(ValidationError, match="Job 1:"):
            await job_service.create_bulk_jobs(db, hr_user, [
                {"title": "A", "description": "a", "location": "X", "minSalary": -5},
            ])

    async def test_only_hr(self, db, candidate):
        with pytest.raises(ForbiddenError):
            await job_service.create_bulk_jobs(db, candidate, [{"title": "A"}])


class TestReadJob:

    async def test_get_by_id_and_slug(self, db, hr_user, create_job):
        job = await create_job(hr_user)

        by_id = await job_service.get_job(db, job["id"])
        by_slug = await job_service.get_job_by_slug(db, job["slug"])

        assert by_id["job"]["id"] == by_slug["job"]["id"] == job["id"]
        assert by_id["isApplied"] is False

    async def test_missing(self, db):
        with pytest.raises(NotFoundError, match="Job not found"):
            await job_service.get_job(db, 999)
        with pytest.raises(NotFoundError, match="Job not found"):
            await job_service.get_job_by_slug(db, "nope")

    async def test_draft_hidden_from_public(self, db, hr_user, other_hr, admin_user, create_job):
        job = await create_job(hr_user, status="draft")

        with pytest.raises(NotFoundError):
            await job_service.get_job(db, job["id"])
        with pytest.raises(NotFoundError):
            await job_service.get_job(db, job["id"], other_hr)
        assert (await job_service.get_job(db, job["id"], hr_user))["job"]["status"] == "draft"
        assert (await job_service.get_job(db, job["id"], admin_user))["job"]["id"] == job["id"]

    async def test_is_applied(self, db, hr_user, candidate, create_job):
        job = await create_job(hr_user)
        await job_service.apply_to_job(db, job["id"], candidate, RESUME)

        result = await job_service.get_job(db, job["id"], candidate)
        assert result["isApplied"] is True


class TestUpdateJob:

    async def test_owner_updates(self, db, hr_user, create_job):
        job = await create_job(hr_user, skills=["python"])
        result = await job_service.update_job(
            db, job["id"], hr_user,
            JobUpdate(title="Senior Backend Engineer", skills="Go, Rust", min_salary=10),
        )

        updated = result["job"]
        assert updated["title"] == "Senior Backend Engineer"
        assert updated["skills"] == ["go", "rust"]
        assert updated["minSalary"] == 10
        assert updated["slug"] == job["slug"]

    async def test_other_hr_forbidden(self, db, hr_user, other_hr, create_job):
        job = await create_job(hr_user)
        with pytest.raises(ForbiddenError, match="You are not authorized to update this job"):
            await job_service.update_job(db, job["id"], other_hr, JobUpdate(title="Mine now"))

    async def test_admin_can_update(self, db, hr_user, admin_user, create_job):
        job = await create_job(hr_user)
        result = await job_service.update_job(db, job["id"], admin_user, JobUpdate(is_featured=True))
        assert result["job"]["isFeatured"] is True

    async def test_protected_fields_not_assignable(self, db, hr_user, create_job):
        job = await create_job(hr_user)
        payload = JobUpdate.model_validate({"postedBy": 999, "totalViews": 50, "title": "T"})
        result = await job_service.update_job(db, job["id"], hr_user, payload)

        assert result["job"]["postedBy"]["id"] == hr_user.id
        assert result["job"]["totalViews"] == 0

    async def test_merged_external_rule(self, db, hr_user, create_job):
        job = await create_job(hr_user)
        with pytest.raises(ValidationError, match="applyUrl is required for external jobs"):
            await job_service.update_job(db, job["id"], hr_user, JobUpdate(apply_type="external"))

    async def test_merged_salary_rule(self, db, hr_user, create_job):
        job = await create_job(hr_user, min_salary=100, max_salary=200)
        with pytest.raises(ValidationError, match="maxSalary must be greater than or equal to minSalary"):
            await job_service.update_job(db, job["id"], hr_user, JobUpdate(min_salary=300))

    async def test_blank_title_rejected(self, db, hr_user, create_job):
        job = await create_job(hr_user)
        with pytest.raises(ValidationError, match="title is required"):
            await job_service.update_job(db, job["id"], hr_user, JobUpdate(title="  "))

    async def test_pause_and_resume(self, db, hr_user, create_job):
        job = await create_job(hr_user)

        paused = await job_service.update_job(db, job["id"], hr_user, JobUpdate(is_active=False))
        assert paused["job"]["isActive"] is False
        resumed = await job_service.update_job(db, job["id"], hr_user, JobUpdate(is_active=True))
        assert resumed["job"]["isActive"] is True

    async def test_closed_cannot_be_reactivated(self, db, hr_user, create_job):
        job = await create_job(hr_user)
        await job_service.close_job(db, job["id"], hr_user)

        with pytest.raises(ValidationError, match="Job is closed and cannot be re-activated"):
            await job_service.update_job(db, job["id"], hr_user, JobUpdate(is_active=True))

    async def test_missing_job(self, db, hr_user):
        with pytest.raises(NotFoundError):
            await job_service.update_job(db, 404, hr_user, JobUpdate(title="x"))


class TestTransitions:

    async def test_publish_draft(self, db, hr_user, create_job):
        job = await create_job(hr_user, status="draft")
        result = await job_service.publish_job(db, job["id"], hr_user)

        assert result["job"]["status"] == "published"
        assert result["job"]["isActive"] is True

    async def test_close(self, db, hr_user, candidate, create_job):
        job = await create_job(hr_user)
        result = await job_service.close_job(db, job["id"], hr_user)

        assert result["job"]["status"] == "closed"
        assert result["job"]["isActive"] is False
        assert result["job"]["closedAt"] is not None

        # Still readable, no longer open for applications
        assert (await job_service.get_job(db, job["id"]))["job"]["status"] == "closed"
        with pytest.raises(ValidationError, match="Job is not available to apply"):
            await job_service.apply_to_job(db, job["id"], candidate, RESUME)

    async def test_close_is_idempotent(self, db, hr_user, create_job):
        job = await create_job(hr_user)
        first = await job_service.close_job(db, job["id"], hr_user)
        second = await job_service.close_job(db, job["id"], hr_user)
        assert first["job"]["closedAt"] == second["job"]["closedAt"]

    async def test_close_forbidden_for_others(self, db, hr_user, other_hr, create_job):
        job = await create_job(hr_user)
        with pytest.raises(ForbiddenError):
            await job_service.close_job(db, job["id"], other_hr)

    async def test_archive(self, db, hr_user, create_job):
        job = await create_job(hr_user)
        result = await job_service.archive_job(db, job["id"], hr_user)
        assert result == {"jobId": job["id"], "message": "Job archived successfully"}

        with pytest.raises(NotFoundError):
            await job_service.get_job(db, job["id"])
        owner_view = await job_service.get_job(db, job["id"], hr_user)
        assert owner_view["job"]["status"] == "archived"
        assert owner_view["job"]["archivedAt"] is not None

    async def test_archived_is_terminal(self, db, hr_user, create_job):
        job = await create_job(hr_user)
        await job_service.archive_job(db, job["id"], hr_user)

        with pytest.raises(ValidationError, match="Archived job cannot be closed"):
            await job_service.close_job(db, job["id"], hr_user)
        with pytest.raises(ValidationError, match="Job is archived and cannot be published"):
            await job_service.publish_job(db, job["id"], hr_user)
        with pytest.raises(ValidationError, match="Job is archived and cannot be re-activated"):
            await job_service.update_job(db, job["id"], hr_user, JobUpdate(is_active=True))

    async def test_archive_forbidden_for_others(self, db, hr_user, other_hr, create_job):
        job = await create_job(hr_user)
        with pytest.raises(ForbiddenError, match="You are not authorized to delete this job"):
            await job_service.archive_job(db, job["id"], other_hr)


class TestPermanentDelete:

    async def test_admin_only(self, db, hr_user, create_job):
        job = await create_job(hr_user)
        with pytest.raises(ForbiddenError, match="Only admin can permanently delete jobs"):
            await job_service.delete_job_permanent(db, job["id"], hr_user)

    async def test_removes_job_and_dependents(self, db, hr_user, candidate, admin_user, create_job):
        job = await create_job(hr_user, skills=["python"])
        await job_service.apply_to_job(db, job["id"], candidate, RESUME)
        await job_service.record_job_view(db, job["id"], "visitor-1", 3600)

        result = await job_service.delete_job_permanent(db, job["id"], admin_user)

        assert result == {"jobId": job["id"]}
        assert await count(db, Job) == 0
        assert await count(db, Application) == 0
        assert await count(db, JobSkill) == 0
        with pytest.raises(NotFoundError):
            await job_service.get_job(db, job["id"], admin_user)

    async def test_missing(self, db, admin_user):
        with pytest.raises(NotFoundError):
            await job_service.delete_job_permanent(db, 404, admin_user)


class TestApplications:

    async def test_apply(self, db, hr_user, candidate, create_job):
        job = await create_job(hr_user)
        result = await job_service.apply_to_job(db, job["id"], candidate, RESUME, "Hello")

        assert result["application"]["status"] == "applied"
        assert result["application"]["appliedAt"] is not None
        refreshed = await job_service.get_job(db, job["id"])
        assert refreshed["job"]["totalApplications"] == 1

    async def test_duplicate(self, db, hr_user, candidate, create_job):
        job = await create_job(hr_user)
        await job_service.apply_to_job(db, job["id"], candidate, RESUME)

        with pytest.raises(ConflictError, match="You have already applied to this job"):
            await job_service.apply_to_job(db, job["id"], candidate, RESUME)
        assert (await job_service.get_job(db, job["id"]))["job"]["totalApplications"] == 1

    async def test_only_candidates(self, db, hr_user, other_hr, create_job):
        job = await create_job(hr_user)
        with pytest.raises(ForbiddenError, match="Only candidates can apply"):
            await job_service.apply_to_job(db, job["id"], other_hr, RESUME)

    async def test_resume_required(self, db, hr_user, candidate, create_job):
        job = await create_job(hr_user)
        with pytest.raises(ValidationError, match="Resume URL is required"):
            await job_service.apply_to_job(db, job["id"], candidate, "  ")

    async def test_missing_job(self, db, candidate):
        with pytest.raises(ValidationError, match="Job is not available to apply"):
            await job_service.apply_to_job(db, 404, candidate, RESUME)

    async def test_draft_not_open(self, db, hr_user, candidate, create_job):
        job = await create_job(hr_user, status="draft")
        with pytest.raises(ValidationError, match="Job is not available to apply"):
            await job_service.apply_to_job(db, job["id"], candidate, RESUME)

    async def test_expired(self, db, hr_user, candidate, create_job):
        job = await create_job(hr_user, expiry_date=now() - timedelta(days=1))
        with pytest.raises(ValidationError, match="Job has expired"):
            await job_service.apply_to_job(db, job["id"], candidate, RESUME)

    async def test_list_applicants(self, db, hr_user, candidate, create_job):
        job = await create_job(hr_user)
        await job_service.apply_to_job(db, job["id"], candidate, RESUME)

        result = await job_service.list_applicants(db, job["id"], hr_user)
        assert result["totalApplicants"] == 1
        assert result["applicants"][0]["candidate"]["id"] == candidate.id
        assert result["applicants"][0]["resumeUrl"] == RESUME

        count_result = await job_service.get_applicants_count(db, job["id"])
        assert count_result == {"jobId": job["id"], "applicantsCount": 1}

    async def test_list_applicants_forbidden(self, db, hr_user, other_hr, create_job):
        job = await create_job(hr_user)
        with pytest.raises(ForbiddenError):
            await job_service.list_applicants(db, job["id"], other_hr)

    async def test_count_for_missing_job(self, db):
        with pytest.raises(NotFoundError):
            await job_service.get_applicants_count(db, 404)
