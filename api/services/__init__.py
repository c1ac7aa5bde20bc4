"""
API Services Layer.

Database operations behind the API endpoints. Services take an
``AsyncSession`` plus plain values and return plain dictionaries, so they can
be exercised without an HTTP harness.
"""

from api.services.users import (
    register_user,
    login_user,
    get_profile,
)

from api.services.auth import (
    refresh_access_token,
    logout_user,
    change_password,
    forgot_password,
    reset_password,
)

from api.services.jobs import (
    create_job,
    create_bulk_jobs,
    get_job,
    get_job_by_slug,
    update_job,
    publish_job,
    close_job,
    archive_job,
    delete_job_permanent,
    apply_to_job,
    list_applicants,
    get_applicants_count,
    record_job_view,
    purge_expired_job_views,
)

from api.services.job_search import (
    JobSearchCriteria,
    search_jobs,
    featured_jobs,
    suggest_jobs,
    list_my_jobs,
)

from api.services.companies import (
    create_company,
    list_companies,
    get_company,
)

__all__ = [
    # Users & auth
    "register_user",
    "login_user",
    "get_profile",
    "refresh_access_token",
    "logout_user",
    "change_password",
    "forgot_password",
    "reset_password",
    # Jobs
    "create_job",
    "create_bulk_jobs",
    "get_job",
    "get_job_by_slug",
    "update_job",
    "publish_job",
    "close_job",
    "archive_job",
    "delete_job_permanent",
    "apply_to_job",
    "list_applicants",
    "get_applicants_count",
    "record_job_view",
    "purge_expired_job_views",
    # Search
    "JobSearchCriteria",
    "search_jobs",
    "featured_jobs",
    "suggest_jobs",
    "list_my_jobs",
    # Companies
    "create_company",
    "list_companies",
    "get_company",
]
