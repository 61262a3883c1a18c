"""
Shared FastAPI dependencies.

The `Database` handle lives on ``app.state``; list endpoints share one set of
paging query parameters.
"""
from typing import Any, Dict, Optional

import pydantic
from fastapi import Query
from starlette.requests import Request

from pmcore.db.database import Database
from pmcore.db.errors import ValidationError
from pmcore.db.schemas import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, Page, Pagination, QueryFilters
from pmcore.db.repositories.base import PageResult


def get_database(request: Request) -> Database:
    return request.app.state.database


def paging_params(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, max_length=255),
    sort_by: str = Query("created_at", max_length=50),
    sort_order: str = Query("desc"),
) -> Dict[str, Any]:
    return {
        "page": page,
        "limit": limit,
        "search": search,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }


def build_filters(paging: Dict[str, Any], **filters: Any) -> QueryFilters:
    """Combine paging parameters and entity filters; bad values become a 400."""
    try:
        return QueryFilters.from_params(**paging, **filters)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid list parameters: {e.errors()[0].get('msg')}") from e


def page_response(result: PageResult, filters: QueryFilters, schema) -> Page:
    return Page[schema](
        data=[schema.model_validate(row) for row in result.data],
        pagination=Pagination.of(filters, result.total),
    )
