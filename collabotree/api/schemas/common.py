"""
Response envelopes shared by every endpoint.

Success::

    {"success": true, "message": "...", "data": {...}}

Paginated lists add ``meta``::

    {"success": true, "message": "...", "data": [...], "meta": {...}}
"""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from collabotree.services.pagination import PaginatedResult

T = TypeVar("T")


class PaginationMeta(BaseModel):
    """Pagination metadata included in every paginated response."""

    page: int = Field(ge=1, description="Current page number (1-indexed)")
    page_size: int = Field(ge=1, description="Number of items per page")
    total_items: int = Field(ge=0, description="Total number of matching items")
    total_pages: int = Field(ge=0, description="Total number of pages")

    @classmethod
    def from_result(cls, result: PaginatedResult) -> "PaginationMeta":
        return cls(
            page=result.page,
            page_size=result.page_size,
            total_items=result.total_items,
            total_pages=result.total_pages,
        )


class ApiResponse(BaseModel, Generic[T]):
    """Standard success envelope."""

    success: bool = True
    message: Optional[str] = None
    data: T


class PaginatedResponse(BaseModel, Generic[T]):
    """Standard success envelope for list endpoints."""

    success: bool = True
    message: Optional[str] = None
    data: list[T]
    meta: PaginationMeta
