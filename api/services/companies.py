"""Company directory service functions."""

from typing import Any, Dict, Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.common import Pagination, paginated
from api.schemas.jobs import CompanyCreate
from core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    require_fields,
    surface_db_errors,
)
from core.utils.datetime import isoformat
from core.utils.formatting import escape_like
from core.utils.validators import validate_url
from database.models.companies import Company
from database.models.users import User, UserType

logger = logging.getLogger(__name__)

COMPANY_EXISTS = "Company already exists"


def serialize_company(company: Company) -> Dict[str, Any]:
    return {
        "id": company.id,
        "name": company.name,
        "logo": company.logo,
        "website": company.website,
        "industry": company.industry,
        "size": company.size.value if company.size else None,
        "headquarters": company.headquarters,
        "description": company.description,
        "createdBy": company.created_by,
        "createdAt": isoformat(company.created_at),
    }


@surface_db_errors()
async def create_company(
    db: AsyncSession,
    creator: User,
    payload: CompanyCreate,
) -> Dict[str, Any]:
    """Register a company. Names are unique regardless of case."""
    if creator.user_type != UserType.HR:
        raise ForbiddenError("Only HR users can perform this action")
    require_fields({"name": payload.name})

    name = payload.name.strip()
    name_key = name.lower()

    for attr in ("website", "logo"):
        value = getattr(payload, attr)
        if value and not validate_url(value.strip())[0]:
            raise ValidationError(f"{attr} must be a valid URL")

    existing = await db.execute(select(Company.id).where(Company.name_key == name_key))
    if existing.first() is not None:
        raise ConflictError(COMPANY_EXISTS)

    company = Company(
        name=name,
        name_key=name_key,
        logo=(payload.logo or "").strip() or None,
        website=(payload.website or "").strip() or None,
        industry=payload.industry,
        size=payload.size,
        headquarters=payload.headquarters,
        description=payload.description,
        created_by=creator.id,
    )
    db.add(company)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(COMPANY_EXISTS)

    logger.info(f"Company {company.id} created by user {creator.id}")
    return {"company": serialize_company(company)}


@surface_db_errors()
async def list_companies(
    db: AsyncSession,
    pagination: Pagination,
    q: Optional[str] = None,
) -> Dict[str, Any]:
    """Companies ordered by name, optionally filtered by a name substring."""
    query = select(Company)
    if q and q.strip():
        term = q.strip().lower()
        query = query.where(
            Company.name_key.like(f"%{escape_like(term)}%", escape="\\")
        )

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(Company.name_key.asc(), Company.id.asc())
        .offset(pagination.offset)
        .limit(pagination.limit)
    )
    companies = [serialize_company(c) for c in result.scalars().all()]
    return paginated(companies, total or 0, pagination)


@surface_db_errors()
async def get_company(db: AsyncSession, company_id: int) -> Dict[str, Any]:
    company = await db.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found")
    return {"company": serialize_company(company)}
