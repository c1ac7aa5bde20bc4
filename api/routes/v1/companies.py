"""Company directory endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import require_hr_user
from api.schemas.common import MAX_DB_INT, normalize_pagination, success_response
from api.schemas.jobs import CompanyCreate
from api.services import companies as company_service
from database.engine import get_db
from database.models.users import User

router = APIRouter(prefix="/companies")


@router.post("", summary="Create Company")
async def create_company(
    payload: CompanyCreate,
    current_user: User = Depends(require_hr_user),
    db: AsyncSession = Depends(get_db),
):
    result = await company_service.create_company(db, current_user, payload)
    return success_response(result, "Company created successfully")


@router.get("", summary="List Companies")
async def list_companies(
    q: Optional[str] = Query(None, description="Name contains"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    result = await company_service.list_companies(
        db, normalize_pagination(page, limit), q
    )
    return success_response(result, "Companies fetched successfully")


@router.get("/{company_id}", summary="Get Company")
async def get_company(
    company_id: int = Path(..., ge=1, le=MAX_DB_INT, description="Company ID"),
    db: AsyncSession = Depends(get_db),
):
    result = await company_service.get_company(db, company_id)
    return success_response(result, "Company fetched successfully")
