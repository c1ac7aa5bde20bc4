"""Common Pydantic schemas and response helpers shared across the API."""

import math
from dataclasses import dataclass
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DEFAULT_PAGE_LIMIT = 10
PUBLIC_MAX_LIMIT = 50
OWNER_MAX_LIMIT = 5000

# Largest value a BIGINT column or an OFFSET accepts
MAX_DB_INT = 2**63 - 1
MAX_PAGE = MAX_DB_INT // OWNER_MAX_LIMIT


class CamelModel(BaseModel):
    """Request model accepting camelCase keys (snake_case also accepted)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def success_response(result: Any = None, message: str = "") -> dict[str, Any]:
    """Build the success envelope."""
    return {
        "RESULT": result,
        "MESSAGE": message,
        "STATUS": 1,
        "IS_TOKEN_EXPIRE": 0,
    }


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Pagination:
    """Normalized page/limit pair."""

    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def pages_for(self, total: int) -> int:
        return math.ceil(total / self.limit) if total else 0


def normalize_pagination(
    page: Any = None,
    limit: Any = None,
    max_limit: int = PUBLIC_MAX_LIMIT,
    default_limit: int = DEFAULT_PAGE_LIMIT,
) -> Pagination:
    """
    Coerce raw query values into a valid pagination.

    Non-numeric or non-positive pages become 1 and huge pages are capped so
    the offset still fits the database. A missing or non-numeric limit
    becomes the default, anything else is clamped to ``[1, max_limit]``.
    """
    page_value = _to_int(page)
    limit_value = _to_int(limit)
    if page_value is None or page_value < 1:
        page_value = 1
    page_value = min(page_value, MAX_PAGE)
    if limit_value is None:
        limit_value = default_limit
    limit_value = max(1, min(limit_value, max_limit))
    return Pagination(page=page_value, limit=limit_value)


def paginated(results: list, total: int, pagination: Pagination) -> dict[str, Any]:
    return {
        "results": results,
        "total": total,
        "page": pagination.page,
        "limit": pagination.limit,
        "pages": pagination.pages_for(total),
    }
