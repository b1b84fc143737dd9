"""Page/limit handling shared by list operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.config import get_settings

T = TypeVar("T")

DEFAULT_PAGE = 1


@dataclass
class Page(Generic[T]):
    """One page of results plus the total under the same filter."""

    items: list[T] = field(default_factory=list)
    total: int = 0
    page: int = DEFAULT_PAGE
    limit: int = 20

    @property
    def meta(self) -> dict[str, int]:
        return {"total": self.total, "page": self.page, "limit": self.limit}


def clamp_paging(page: int | None, limit: int | None) -> tuple[int, int]:
    """Normalise a 1-based page and a limit capped at the configured maximum."""
    settings = get_settings()
    page = max(int(page or DEFAULT_PAGE), 1)
    limit = int(limit or settings.default_page_limit)
    limit = min(max(limit, 1), settings.max_page_limit)
    return page, limit


async def paginate(
    session: AsyncSession,
    query: Select[Any],
    page: int | None,
    limit: int | None,
) -> Page[Any]:
    """Run count and page reads in the session's current transaction."""
    page, limit = clamp_paging(page, limit)

    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = await session.scalar(count_query) or 0

    result = await session.execute(query.offset((page - 1) * limit).limit(limit))
    items = list(result.scalars().unique().all())

    return Page(items=items, total=total, page=page, limit=limit)
