"""
Guide payout ledger.

A payout records a transfer of guide-share earnings computed from a revenue
snapshot. It never touches bookings. The only state change is
pending -> paid, applied with a conditional UPDATE so two settlements of the
same payout cannot both succeed.

Duplicate protection for creation is layered:
  1. Redis submission gate (advisory, fails open)
  2. Pre-insert lookup on (guide_id, snapshot_key)
  3. UNIQUE (guide_id, snapshot_key) constraint (authoritative)

snapshot_key fingerprints the guide's completed+paid bookings inside the
payout period, so it changes as soon as new tours become payable.

The unpaid-share limit is checked against a guide-level ledger version that
the same transaction then bumps with a compare-and-swap, so two payout
writes for one guide cannot both pass the limit on the same ledger state.
"""

import hashlib
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.clock import ensure_utc, utcnow
from tourdesk.core.config import get_settings
from tourdesk.core.exceptions import (
    ConflictError,
    NotFoundError,
    PayoutLimitExceededError,
    ValidationError,
)
from tourdesk.core.logging import get_logger
from tourdesk.core.metrics import payout_amount, record_payout_operation
from tourdesk.models.booking import Booking
from tourdesk.models.enums import BookingStatus, PaymentMethod, PaymentStatus, PayoutStatus
from tourdesk.models.guide import Guide
from tourdesk.models.payout import PayoutRecord
from tourdesk.schemas.payout import PayoutCreate, PayoutSummary
from tourdesk.services.revenue_service import get_guide_earnings
from tourdesk.services.submission_guard import claim_submission, release_submission

logger = get_logger(__name__)


async def payable_booking_ids(
    db: AsyncSession,
    guide_id: int,
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
) -> list[int]:
    query = select(Booking.id).where(
        Booking.assigned_guide_id == guide_id,
        Booking.status == BookingStatus.COMPLETED.value,
        Booking.payment_status == PaymentStatus.PAID.value,
    )
    if period_start is not None:
        query = query.where(Booking.visit_date >= period_start)
    if period_end is not None:
        query = query.where(Booking.visit_date <= period_end)

    result = await db.execute(query.order_by(Booking.id))
    return list(result.scalars().all())


def build_snapshot_key(
    booking_ids: list[int],
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
) -> str:
    digest = hashlib.sha256(",".join(str(i) for i in sorted(booking_ids)).encode()).hexdigest()
    start = period_start.isoformat() if period_start else "open"
    end = period_end.isoformat() if period_end else "open"
    return f"{start}:{end}:{digest[:32]}"


async def _ledger_totals(db: AsyncSession, guide_id: int) -> dict[str, int]:
    result = await db.execute(
        select(PayoutRecord.status, func.coalesce(func.sum(PayoutRecord.amount), 0))
        .where(PayoutRecord.guide_id == guide_id)
        .group_by(PayoutRecord.status)
    )
    totals = {status.value: 0 for status in PayoutStatus}
    totals.update({status: int(amount) for status, amount in result.all()})
    return totals


async def _ledger_version(db: AsyncSession, guide_id: int) -> int:
    result = await db.execute(select(Guide.ledger_version).where(Guide.id == guide_id))
    version = result.scalar_one_or_none()
    if version is None:
        raise NotFoundError("Guide", guide_id)
    return version


async def _bump_ledger_version(
    db: AsyncSession,
    guide_id: int,
    read_version: int,
    operation: str,
) -> None:
    """Compare-and-swap on the guide's ledger version; losing means the ledger moved under us."""
    result = await db.execute(
        update(Guide)
        .where(Guide.id == guide_id, Guide.ledger_version == read_version)
        .values(ledger_version=Guide.ledger_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        record_payout_operation(operation, "conflict")
        logger.warning("payout_ledger_conflict", guide_id=guide_id, read_version=read_version)
        raise ConflictError(f"Payouts for guide {guide_id} were changed by another request")


async def _check_share_limit(
    db: AsyncSession,
    guide_id: int,
    amount: int,
    include_pending: bool,
    operation: str,
) -> None:
    """
    Reject `amount` if it exceeds what the guide is still owed.

    The ledger version is read before the totals and swapped after the check,
    inside the caller's transaction, so concurrent payout writes for the same
    guide are serialised: the second one to commit gets a ConflictError.
    """
    if not get_settings().ENFORCE_PAYOUT_SHARE_LIMIT:
        return

    read_version = await _ledger_version(db, guide_id)
    earnings = await get_guide_earnings(db, guide_id)
    totals = await _ledger_totals(db, guide_id)
    committed = totals[PayoutStatus.PAID.value]
    if include_pending:
        committed += totals[PayoutStatus.PENDING.value]
    unpaid_share = earnings.guide_share - committed

    if amount > unpaid_share:
        record_payout_operation(operation, "limit_exceeded")
        logger.warning(
            "payout_limit_exceeded",
            guide_id=guide_id,
            amount=amount,
            guide_share=earnings.guide_share,
            committed=committed,
        )
        raise PayoutLimitExceededError(
            f"Payout of {amount} exceeds guide {guide_id}'s unpaid share of {max(unpaid_share, 0)}",
            details={
                "guide_share": earnings.guide_share,
                "committed": committed,
                "unpaid_share": unpaid_share,
            },
        )

    await _bump_ledger_version(db, guide_id, read_version, operation)


async def get_payout(db: AsyncSession, payout_id: int) -> PayoutRecord:
    payout = await db.get(PayoutRecord, payout_id, populate_existing=True)
    if payout is None:
        raise NotFoundError("Payout", payout_id)
    return payout


async def list_payouts(
    db: AsyncSession,
    guide_id: Optional[int] = None,
    status: Optional[PayoutStatus] = None,
) -> list[PayoutRecord]:
    query = select(PayoutRecord)
    if guide_id is not None:
        query = query.where(PayoutRecord.guide_id == guide_id)
    if status is not None:
        query = query.where(PayoutRecord.status == PayoutStatus(status).value)

    result = await db.execute(query.order_by(PayoutRecord.created_at.desc(), PayoutRecord.id.desc()))
    return list(result.scalars().all())


async def create_payout(db: AsyncSession, data: PayoutCreate) -> PayoutRecord:
    """Record a payout snapshot for a guide. Bookings are not marked as settled."""
    if data.period_start and data.period_end and data.period_start > data.period_end:
        raise ValidationError("period_start must not be after period_end")
    if data.status == PayoutStatus.PAID and data.payment_method is None:
        raise ValidationError("A paid payout requires a payment_method")

    if await db.get(Guide, data.guide_id) is None:
        raise NotFoundError("Guide", data.guide_id)

    booking_ids = await payable_booking_ids(db, data.guide_id, data.period_start, data.period_end)
    snapshot_key = build_snapshot_key(booking_ids, data.period_start, data.period_end)
    submission_id = f"{data.guide_id}:{snapshot_key}"

    if not await claim_submission("payout", submission_id):
        record_payout_operation("create", "duplicate")
        raise ConflictError(
            f"A payout for guide {data.guide_id} and this tour set is already being submitted"
        )

    try:
        existing = await db.execute(
            select(PayoutRecord.id).where(
                PayoutRecord.guide_id == data.guide_id,
                PayoutRecord.snapshot_key == snapshot_key,
            )
        )
        existing_id = existing.scalar_one_or_none()
        if existing_id is not None:
            record_payout_operation("create", "duplicate")
            raise ConflictError(
                f"Payout {existing_id} already covers this tour set for guide {data.guide_id}",
                details={"payout_id": existing_id},
            )

        await _check_share_limit(db, data.guide_id, data.amount, include_pending=True, operation="create")

        paid = data.status == PayoutStatus.PAID
        payout = PayoutRecord(
            guide_id=data.guide_id,
            amount=data.amount,
            tours_count=data.tours_count,
            period_start=data.period_start,
            period_end=data.period_end,
            snapshot_key=snapshot_key,
            status=data.status.value,
            payment_method=data.payment_method.value if data.payment_method else None,
            payment_reference=data.payment_reference,
            paid_at=utcnow() if paid else None,
            notes=data.notes,
        )
        db.add(payout)
        try:
            await db.flush()
        except IntegrityError as e:
            record_payout_operation("create", "duplicate")
            raise ConflictError(
                f"A payout for guide {data.guide_id} already covers this tour set"
            ) from e
    except Exception:
        await release_submission("payout", submission_id)
        raise

    await db.refresh(payout)
    record_payout_operation("create", "success")
    if paid:
        payout_amount.inc(payout.amount)
    logger.info(
        "payout_created",
        payout_id=payout.id,
        guide_id=payout.guide_id,
        amount=payout.amount,
        tours_count=payout.tours_count,
        status=payout.status,
        payable_bookings=len(booking_ids),
    )
    return payout


async def mark_payout_paid(
    db: AsyncSession,
    payout_id: int,
    payment_method: PaymentMethod,
    payment_reference: Optional[str] = None,
    at: Optional[datetime] = None,
) -> PayoutRecord:
    """pending -> paid. One-way; settling an already paid payout is a conflict."""
    payout = await get_payout(db, payout_id)
    if payout.status == PayoutStatus.PAID.value:
        record_payout_operation("mark_paid", "conflict")
        raise ConflictError(f"Payout {payout_id} is already paid")

    await _check_share_limit(
        db, payout.guide_id, payout.amount, include_pending=False, operation="mark_paid"
    )

    paid_at = ensure_utc(at) or utcnow()
    result = await db.execute(
        update(PayoutRecord)
        .where(PayoutRecord.id == payout_id, PayoutRecord.status == PayoutStatus.PENDING.value)
        .values(
            status=PayoutStatus.PAID.value,
            payment_method=PaymentMethod(payment_method).value,
            payment_reference=payment_reference,
            paid_at=paid_at,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        record_payout_operation("mark_paid", "conflict")
        logger.warning("payout_settlement_conflict", payout_id=payout_id)
        raise ConflictError(f"Payout {payout_id} was settled by another request")

    await db.refresh(payout)
    record_payout_operation("mark_paid", "success")
    payout_amount.inc(payout.amount)
    logger.info(
        "payout_paid",
        payout_id=payout.id,
        guide_id=payout.guide_id,
        amount=payout.amount,
        payment_method=payout.payment_method,
    )
    return payout


async def get_payout_summary(db: AsyncSession, now: Optional[datetime] = None) -> PayoutSummary:
    now = ensure_utc(now) or utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    by_status = await db.execute(
        select(PayoutRecord.status, func.coalesce(func.sum(PayoutRecord.amount), 0))
        .group_by(PayoutRecord.status)
    )
    totals = {status: int(amount) for status, amount in by_status.all()}

    this_month = await db.execute(
        select(func.coalesce(func.sum(PayoutRecord.amount), 0)).where(
            PayoutRecord.status == PayoutStatus.PAID.value,
            PayoutRecord.paid_at >= month_start,
        )
    )
    awaiting = await db.execute(
        select(func.count(func.distinct(PayoutRecord.guide_id))).where(
            PayoutRecord.status == PayoutStatus.PENDING.value
        )
    )

    return PayoutSummary(
        total_paid_out=totals.get(PayoutStatus.PAID.value, 0),
        total_pending=totals.get(PayoutStatus.PENDING.value, 0),
        this_month_paid=int(this_month.scalar_one()),
        guides_awaiting_payment=int(awaiting.scalar_one()),
    )
