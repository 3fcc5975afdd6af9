"""
Revenue report endpoint. Recomputed from the booking table on every request;
dashboards that poll it always get a fresh, consistent snapshot.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.db.session import get_db
from tourdesk.models.enums import BookingStatus
from tourdesk.schemas.revenue import RevenueFilters, RevenueReport
from tourdesk.services.revenue_service import get_revenue_report

router = APIRouter(prefix="/revenue", tags=["Revenue"])


@router.get("/", response_model=RevenueReport)
async def revenue_report(
    guide_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    as_of: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    filters = RevenueFilters(
        guide_id=guide_id, date_from=date_from, date_to=date_to, status=status_filter
    )
    return await get_revenue_report(db, filters, as_of)
