"""
Offset pagination for list endpoints.
"""
import math
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


async def paginate(db: AsyncSession, query: Select, page: int, limit: int) -> dict[str, Any]:
    """
    Run a select one page at a time.

    Returns the page envelope shared by all list endpoints:
    data, count, total, page and page_count. The query must already be ordered.
    """
    total = await db.scalar(select(func.count()).select_from(query.order_by(None).subquery()))
    result = await db.execute(query.offset((page - 1) * limit).limit(limit))
    rows = result.scalars().all()
    return {
        "data": rows,
        "count": len(rows),
        "total": total,
        "page": page,
        "page_count": math.ceil(total / limit) if total else 0,
    }
