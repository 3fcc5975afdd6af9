"""
Read-only guide endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.db.session import get_db
from tourdesk.schemas.guide import GuideResponse
from tourdesk.schemas.revenue import GuideEarnings
from tourdesk.services.guide_service import get_guide, list_guides
from tourdesk.services.revenue_service import get_guide_earnings

router = APIRouter(prefix="/guides", tags=["Guides"])


@router.get("/", response_model=list[GuideResponse])
async def list_guides_endpoint(
    active_only: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await list_guides(db, active_only)


@router.get("/{guide_id}", response_model=GuideResponse)
async def get_guide_endpoint(guide_id: int, db: AsyncSession = Depends(get_db)):
    return await get_guide(db, guide_id)


@router.get("/{guide_id}/earnings", response_model=GuideEarnings)
async def get_guide_earnings_endpoint(guide_id: int, db: AsyncSession = Depends(get_db)):
    """All-time earnings for the guide, recomputed on every call."""
    return await get_guide_earnings(db, guide_id)
