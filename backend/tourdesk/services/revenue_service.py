"""
Revenue aggregation over the booking set.

aggregate_revenue() is a pure function: same bookings in, same report out,
regardless of input order. Every group is accumulated in a dict and emitted
sorted by key. Nothing is cached; each report is recomputed from one SELECT,
which is a single consistent snapshot of the bookings table, so a booking
cannot be counted as both paid and unpaid within one report.

Revenue is recognised on the booking's visit_date.
"""

import time
from collections import defaultdict
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.config import get_settings
from tourdesk.core.exceptions import NotFoundError, ValidationError
from tourdesk.core.logging import get_logger
from tourdesk.core.metrics import revenue_report_latency
from tourdesk.models.booking import Booking
from tourdesk.models.enums import BookingStatus, PaymentStatus
from tourdesk.models.guide import Guide
from tourdesk.schemas.revenue import (
    GuideEarnings,
    MonthlyRevenue,
    RevenueBreakdown,
    RevenueFilters,
    RevenueReport,
    RevenueTotals,
)

logger = get_logger(__name__)

TREND_MONTHS = 6
WEEK = timedelta(days=7)
MONTH = timedelta(days=30)


def split_revenue(paid_revenue: int, guide_share_rate: Decimal) -> tuple[int, int]:
    """Return (guide_share, platform_share), rounding half up to whole currency units."""
    guide_share = int(
        (Decimal(paid_revenue) * Decimal(guide_share_rate)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
    return guide_share, paid_revenue - guide_share


def _matches(booking, filters: RevenueFilters) -> bool:
    if filters.guide_id is not None and booking.assigned_guide_id != filters.guide_id:
        return False
    if filters.date_from is not None and booking.visit_date < filters.date_from:
        return False
    if filters.date_to is not None and booking.visit_date > filters.date_to:
        return False
    if filters.status is not None and booking.status != BookingStatus(filters.status).value:
        return False
    return True


def _trend_months(as_of: date) -> list[tuple[int, int]]:
    months = []
    year, month = as_of.year, as_of.month
    for _ in range(TREND_MONTHS):
        months.append((year, month))
        year, month = (year - 1, 12) if month == 1 else (year, month - 1)
    return list(reversed(months))


def _breakdown(groups: Mapping[str, list[int]]) -> list[RevenueBreakdown]:
    return [
        RevenueBreakdown(key=key, amount=sum(amounts), count=len(amounts))
        for key, amounts in sorted(groups.items())
    ]


def _guide_earnings(
    guide_id: int,
    bookings: list,
    guide_share_rate: Decimal,
    guide_name: Optional[str] = None,
) -> GuideEarnings:
    completed = [b for b in bookings if b.status == BookingStatus.COMPLETED.value]
    paid = [b for b in completed if b.payment_status == PaymentStatus.PAID.value]
    pending = [b for b in completed if b.payment_status == PaymentStatus.PENDING.value]

    paid_revenue = sum(b.total_amount for b in paid)
    guide_share, platform_share = split_revenue(paid_revenue, guide_share_rate)
    return GuideEarnings(
        guide_id=guide_id,
        guide_name=guide_name,
        completed_tours=len(completed),
        paid_tours=len(paid),
        pending_tours=len(pending),
        total_revenue=sum(b.total_amount for b in completed),
        paid_revenue=paid_revenue,
        pending_revenue=sum(b.total_amount for b in pending),
        guide_share=guide_share,
        platform_share=platform_share,
    )


def aggregate_revenue(
    bookings: Iterable,
    filters: Optional[RevenueFilters] = None,
    *,
    as_of: date,
    guide_share_rate: Decimal = Decimal("1"),
    guide_names: Optional[Mapping[int, str]] = None,
    currency: str = "MWK",
) -> RevenueReport:
    """
    Build the revenue report for `bookings`.

    Per-guide figures only cover bookings with an assigned guide; global
    totals and breakdowns cover every booking that passes the filters.
    `as_of` anchors the weekly/monthly windows and the trend; it is required
    so the same bookings always produce the same report.
    """
    filters = filters or RevenueFilters()
    guide_names = guide_names or {}
    selected = [b for b in bookings if _matches(b, filters)]

    by_guide: dict[int, list] = defaultdict(list)
    by_method: dict[str, list[int]] = defaultdict(list)
    by_tour_type: dict[str, list[int]] = defaultdict(list)
    by_payment_status: dict[str, list[int]] = defaultdict(list)
    by_status: dict[str, list[int]] = defaultdict(list)
    trend_keys = _trend_months(as_of)
    trend: dict[tuple[int, int], list[int]] = {key: [] for key in trend_keys}

    total_revenue = weekly_revenue = monthly_revenue = 0
    pending_revenue = refunded_amount = completed_revenue = 0

    for booking in selected:
        amount = booking.total_amount or 0
        if booking.assigned_guide_id is not None:
            by_guide[booking.assigned_guide_id].append(booking)

        by_tour_type[booking.tour_type].append(amount)
        by_payment_status[booking.payment_status].append(amount)
        by_status[booking.status].append(amount)

        if booking.status == BookingStatus.COMPLETED.value:
            completed_revenue += amount

        if booking.payment_status == PaymentStatus.PAID.value:
            total_revenue += amount
            by_method[booking.payment_method].append(amount)
            if as_of - WEEK < booking.visit_date <= as_of:
                weekly_revenue += amount
            if as_of - MONTH < booking.visit_date <= as_of:
                monthly_revenue += amount
            month_key = (booking.visit_date.year, booking.visit_date.month)
            if month_key in trend:
                trend[month_key].append(amount)
        elif booking.payment_status == PaymentStatus.PENDING.value:
            pending_revenue += amount
        elif booking.payment_status == PaymentStatus.REFUNDED.value:
            refunded_amount += amount

    guides = [
        _guide_earnings(guide_id, guide_bookings, guide_share_rate, guide_names.get(guide_id))
        for guide_id, guide_bookings in sorted(by_guide.items())
    ]

    return RevenueReport(
        as_of=as_of,
        currency=currency,
        guide_share_rate=Decimal(guide_share_rate),
        filters=filters,
        totals=RevenueTotals(
            booking_count=len(selected),
            total_revenue=total_revenue,
            weekly_revenue=weekly_revenue,
            monthly_revenue=monthly_revenue,
            pending_revenue=pending_revenue,
            refunded_amount=refunded_amount,
            completed_revenue=completed_revenue,
        ),
        guides=guides,
        by_payment_method=_breakdown(by_method),
        by_tour_type=_breakdown(by_tour_type),
        by_payment_status=_breakdown(by_payment_status),
        by_status=_breakdown(by_status),
        monthly_trend=[
            MonthlyRevenue(month=f"{year:04d}-{month:02d}", revenue=sum(trend[(year, month)]),
                           bookings=len(trend[(year, month)]))
            for year, month in trend_keys
        ],
    )


async def _load_snapshot(db: AsyncSession, filters: RevenueFilters) -> list[Booking]:
    query = select(Booking)
    if filters.guide_id is not None:
        query = query.where(Booking.assigned_guide_id == filters.guide_id)
    if filters.date_from is not None:
        query = query.where(Booking.visit_date >= filters.date_from)
    if filters.date_to is not None:
        query = query.where(Booking.visit_date <= filters.date_to)
    if filters.status is not None:
        query = query.where(Booking.status == BookingStatus(filters.status).value)

    result = await db.execute(query.order_by(Booking.id))
    return list(result.scalars().all())


async def get_revenue_report(
    db: AsyncSession,
    filters: Optional[RevenueFilters] = None,
    as_of: Optional[date] = None,
) -> RevenueReport:
    settings = get_settings()
    filters = filters or RevenueFilters()
    as_of = as_of or date.today()
    if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
        raise ValidationError("date_from must not be after date_to")

    started = time.perf_counter()
    bookings = await _load_snapshot(db, filters)
    guide_rows = await db.execute(select(Guide.id, Guide.name))
    report = aggregate_revenue(
        bookings,
        filters=filters,
        guide_share_rate=settings.GUIDE_SHARE_RATE,
        as_of=as_of,
        guide_names=dict(guide_rows.all()),
        currency=settings.CURRENCY,
    )
    elapsed = time.perf_counter() - started
    revenue_report_latency.observe(elapsed)

    logger.info(
        "revenue_report_computed",
        bookings=report.totals.booking_count,
        guides=len(report.guides),
        duration_ms=round(elapsed * 1000, 2),
    )
    return report


async def get_guide_earnings(db: AsyncSession, guide_id: int) -> GuideEarnings:
    """All-time earnings for one guide, used to bound payouts."""
    guide = await db.get(Guide, guide_id)
    if guide is None:
        raise NotFoundError("Guide", guide_id)

    result = await db.execute(select(Booking).where(Booking.assigned_guide_id == guide_id))
    return _guide_earnings(
        guide_id, list(result.scalars().all()), get_settings().GUIDE_SHARE_RATE, guide.name
    )
