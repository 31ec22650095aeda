"""
Offset pagination shared by the list endpoints.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class PaginatedResult:
    """Generic container for a page of results plus metadata."""

    items: Sequence[Any]
    total_items: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.total_items == 0:
            return 0
        return math.ceil(self.total_items / self.page_size)


async def paginate(
    db: AsyncSession,
    stmt: Select,
    *,
    page: int,
    page_size: int,
) -> PaginatedResult:
    """Run ``stmt`` for one page and count the full result set.

    ``stmt`` must already carry its filters and ordering.
    """
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total_items = (await db.execute(count_stmt)).scalar_one()

    offset = (page - 1) * page_size
    result = await db.execute(stmt.offset(offset).limit(page_size))
    return PaginatedResult(
        items=result.scalars().all(),
        total_items=total_items,
        page=page,
        page_size=page_size,
    )
