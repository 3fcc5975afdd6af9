"""
Pydantic schemas for the payout ledger.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from tourdesk.models.enums import PaymentMethod, PayoutStatus


class PayoutCreate(BaseModel):
    guide_id: int
    amount: int = Field(..., gt=0)
    tours_count: int = Field(default=0, ge=0)
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    status: PayoutStatus = PayoutStatus.PENDING
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=2000)


class PayoutMarkPaid(BaseModel):
    payment_method: PaymentMethod
    payment_reference: Optional[str] = Field(None, max_length=100)


class PayoutResponse(BaseModel):
    id: int
    guide_id: int
    amount: int
    tours_count: int
    period_start: Optional[date]
    period_end: Optional[date]
    status: PayoutStatus
    payment_method: Optional[PaymentMethod]
    payment_reference: Optional[str]
    paid_at: Optional[datetime]
    notes: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class PayoutSummary(BaseModel):
    total_paid_out: int
    total_pending: int
    this_month_paid: int
    guides_awaiting_payment: int


class PayoutMutationResponse(BaseModel):
    payout: PayoutResponse
    summary: PayoutSummary
