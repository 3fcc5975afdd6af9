"""
Payout ledger endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.db.session import get_db
from tourdesk.models.enums import PayoutStatus
from tourdesk.schemas.payout import (
    PayoutCreate,
    PayoutMarkPaid,
    PayoutMutationResponse,
    PayoutResponse,
    PayoutSummary,
)
from tourdesk.services import payout_service

router = APIRouter(prefix="/payouts", tags=["Payouts"])


@router.get("/", response_model=list[PayoutResponse])
async def list_payouts(
    guide_id: Optional[int] = Query(None),
    status_filter: Optional[PayoutStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    return await payout_service.list_payouts(db, guide_id, status_filter)


@router.get("/summary", response_model=PayoutSummary)
async def payout_summary(db: AsyncSession = Depends(get_db)):
    return await payout_service.get_payout_summary(db)


@router.post("/", response_model=PayoutMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_payout(data: PayoutCreate, db: AsyncSession = Depends(get_db)):
    """
    Record a payout for a guide. Rejected with 409 if a payout already covers
    the same completed-tour set, and with 400 if the amount exceeds the
    guide's unpaid share.
    """
    payout = await payout_service.create_payout(db, data)
    summary = await payout_service.get_payout_summary(db)
    return PayoutMutationResponse(payout=PayoutResponse.model_validate(payout), summary=summary)


@router.get("/{payout_id}", response_model=PayoutResponse)
async def get_payout(payout_id: int, db: AsyncSession = Depends(get_db)):
    return await payout_service.get_payout(db, payout_id)


@router.patch("/{payout_id}/mark-paid", response_model=PayoutMutationResponse)
async def mark_paid(payout_id: int, body: PayoutMarkPaid, db: AsyncSession = Depends(get_db)):
    payout = await payout_service.mark_payout_paid(
        db, payout_id, body.payment_method, body.payment_reference
    )
    summary = await payout_service.get_payout_summary(db)
    return PayoutMutationResponse(payout=PayoutResponse.model_validate(payout), summary=summary)
