"""Listing parameters shared by every store."""
from __future__ import annotations

import math
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20

T = TypeVar("T")

_PAGING_KEYS = {"page", "limit", "search", "sort_by", "sort_order"}


class QueryFilters(BaseModel):
    """Immutable filter set: search, entity filters, pagination and sort."""

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    search: Optional[str] = Field(default=None, max_length=255)
    sort_by: str = Field(default="created_at", max_length=50)
    sort_order: Literal["asc", "desc"] = "desc"
    filters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("sort_order", mode="before")
    @classmethod
    def _lower_sort_order(cls, value):
        return value.lower() if isinstance(value, str) else value

    @classmethod
    def from_params(cls, **params: Any) -> "QueryFilters":
        """Split flat query parameters into paging keys and entity filters."""
        paging = {k: v for k, v in params.items() if k in _PAGING_KEYS and v is not None}
        filters = {k: v for k, v in params.items() if k not in _PAGING_KEYS}
        return cls(**paging, filters=filters)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def for_page(self, page: int, limit: Optional[int] = None) -> "QueryFilters":
        update: Dict[str, Any] = {"page": page}
        if limit is not None:
            update["limit"] = limit
        return self.model_validate({**self.model_dump(), **update})


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int

    @classmethod
    def of(cls, filters: QueryFilters, total: int) -> "Pagination":
        return cls(
            page=filters.page,
            limit=filters.limit,
            total=total,
            totalPages=math.ceil(total / filters.limit) if filters.limit else 0,
        )


class Page(BaseModel, Generic[T]):
    """List response envelope."""

    data: List[T]
    pagination: Pagination
