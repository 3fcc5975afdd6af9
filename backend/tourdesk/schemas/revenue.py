"""
Pydantic schemas for the revenue report.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from tourdesk.models.enums import BookingStatus


class RevenueFilters(BaseModel):
    guide_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    status: Optional[BookingStatus] = None


class GuideEarnings(BaseModel):
    guide_id: int
    guide_name: Optional[str] = None
    completed_tours: int = 0
    paid_tours: int = 0
    pending_tours: int = 0
    total_revenue: int = 0
    paid_revenue: int = 0
    pending_revenue: int = 0
    guide_share: int = 0
    platform_share: int = 0


class RevenueBreakdown(BaseModel):
    key: str
    amount: int
    count: int


class MonthlyRevenue(BaseModel):
    month: str  # YYYY-MM
    revenue: int
    bookings: int


class RevenueTotals(BaseModel):
    booking_count: int
    total_revenue: int  # paid, any status
    weekly_revenue: int
    monthly_revenue: int
    pending_revenue: int
    refunded_amount: int
    completed_revenue: int  # completed tours, any payment status


class RevenueReport(BaseModel):
    as_of: date
    currency: str
    guide_share_rate: Decimal
    filters: RevenueFilters
    totals: RevenueTotals
    guides: list[GuideEarnings]
    by_payment_method: list[RevenueBreakdown]
    by_tour_type: list[RevenueBreakdown]
    by_payment_status: list[RevenueBreakdown]
    by_status: list[RevenueBreakdown]
    monthly_trend: list[MonthlyRevenue]
