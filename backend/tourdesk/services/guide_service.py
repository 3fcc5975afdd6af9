"""
Read access to guide reference data.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.exceptions import NotFoundError
from tourdesk.models.guide import Guide


async def get_guide(db: AsyncSession, guide_id: int) -> Guide:
    guide = await db.get(Guide, guide_id)
    if guide is None:
        raise NotFoundError("Guide", guide_id)
    return guide


async def list_guides(db: AsyncSession, active_only: Optional[bool] = None) -> list[Guide]:
    query = select(Guide)
    if active_only:
        query = query.where(Guide.is_active.is_(True))
    result = await db.execute(query.order_by(Guide.name.asc(), Guide.id.asc()))
    return list(result.scalars().all())
