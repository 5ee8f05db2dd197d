"""
shared/utils/pagination.py
Offset pagination over a SELECT: total via count subquery, then one page.
"""

from dataclasses import dataclass
from typing import Any, List

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


@dataclass
class Page:
    items: List[Any]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.page_size) if self.page_size else 0  # ceiling division


async def paginate(
    db: AsyncSession, query: Select, page: int, page_size: int, scalars: bool = True
) -> Page:
    total = await db.scalar(select(func.count()).select_from(query.order_by(None).subquery()))
    result = await db.execute(query.offset((page - 1) * page_size).limit(page_size))
    items = list(result.scalars()) if scalars else list(result.all())
    return Page(items=items, total=total or 0, page=page, page_size=page_size)
