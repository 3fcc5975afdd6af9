"""
Booking lifecycle service.

STATE MACHINE
=============

  pending ──> confirmed ──> completed
     │            │
     └────────────┴──> cancelled

  completed and cancelled are terminal. confirmed -> completed normally
  happens through check_out(), which stamps check_out_time and completes
  the booking in one UPDATE.

CONCURRENCY STRATEGY: Optimistic Locking, No Retry
==================================================

Problem:
  Two operators act on the same booking at once (one cancels while the
  other checks the visitor out). Both read status=confirmed, both write.
  Result: a cancelled booking with a check-out time, or the reverse.

Solution:
  Every mutation is a compare-and-swap on the booking row:

  1. Read the booking and validate the requested change against it
  2. UPDATE bookings SET ..., version = version + 1
     WHERE id = :id AND version = :read_version AND <state preconditions>
  3. If rows_affected == 0, another request got there first -> ConflictError

  The loser is not retried here: the change it validated may no longer
  make sense, so the caller must refetch and decide again. The activity
  record is written in the same transaction after the UPDATE succeeds, and
  the request session rolls back both on any failure.
"""

import secrets
from dataclasses import dataclass
from datetime import date, datetime
from typing import NoReturn, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.core.clock import ensure_utc, utcnow
from tourdesk.core.config import get_settings
from tourdesk.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from tourdesk.core.logging import get_logger
from tourdesk.core.metrics import record_booking_mutation, record_booking_rejection
from tourdesk.models.activity import ActivityRecord
from tourdesk.models.booking import Booking
from tourdesk.models.enums import BookingStatus, PaymentStatus
from tourdesk.models.guide import Guide
from tourdesk.schemas.booking import TourDetails, VisitorInfo
from tourdesk.services.activity_service import record_activity
from tourdesk.services.pricing import calculate_total_amount

logger = get_logger(__name__)

MAX_REFERENCE_ATTEMPTS = 5

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

ASSIGNABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


@dataclass
class BookingMutation:
    """Updated booking plus the activity record the change emitted (None for no-ops)."""

    booking: Booking
    activity: Optional[ActivityRecord]


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[BookingStatus(current)]


def _format_duration(started: datetime, finished: datetime) -> str:
    minutes = int((finished - started).total_seconds() // 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m" if hours else f"{minutes}m"


def _reject(operation: str, reason: str, error: Exception, **context) -> NoReturn:
    logger.warning("booking_mutation_rejected", operation=operation, reason=reason, **context)
    record_booking_rejection(operation, reason)
    raise error


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    # populate_existing so a stale identity-map copy never hides a concurrent write
    booking = await db.get(Booking, booking_id, populate_existing=True)
    if booking is None:
        raise NotFoundError("Booking", booking_id)
    return booking


async def get_booking_by_reference(db: AsyncSession, reference: str) -> Booking:
    result = await db.execute(
        select(Booking).where(Booking.booking_reference == reference.upper())
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFoundError("Booking", reference)
    return booking


async def list_bookings(
    db: AsyncSession,
    status: Optional[BookingStatus] = None,
    guide_id: Optional[int] = None,
    visit_date: Optional[date] = None,
) -> list[Booking]:
    query = select(Booking)
    if status is not None:
        query = query.where(Booking.status == BookingStatus(status).value)
    if guide_id is not None:
        query = query.where(Booking.assigned_guide_id == guide_id)
    if visit_date is not None:
        query = query.where(Booking.visit_date == visit_date)

    result = await db.execute(query.order_by(Booking.visit_date.asc(), Booking.id.asc()))
    return list(result.scalars().all())


async def _load_for_update(
    db: AsyncSession,
    booking_id: int,
    expected_version: Optional[int],
    operation: str,
) -> Booking:
    booking = await get_booking(db, booking_id)
    if expected_version is not None and booking.version != expected_version:
        _reject(
            operation,
            "stale_version",
            ConflictError(
                f"Booking {booking_id} is at version {booking.version}, "
                f"request was based on version {expected_version}",
                details={"current_version": booking.version},
            ),
            booking_id=booking_id,
        )
    return booking


async def _compare_and_swap(
    db: AsyncSession,
    booking: Booking,
    operation: str,
    *preconditions,
    **values,
) -> Booking:
    """Apply `values` only if the row still has the version (and state) we validated against."""
    read_version = booking.version
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.version == read_version, *preconditions)
        .values(version=Booking.version + 1, **values)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        _reject(
            operation,
            "conflict",
            ConflictError(f"Booking {booking.id} was modified by another request"),
            booking_id=booking.id,
            read_version=read_version,
        )

    await db.refresh(booking)
    return booking


async def _generate_reference(db: AsyncSession) -> str:
    settings = get_settings()
    year = utcnow().year
    for _ in range(MAX_REFERENCE_ATTEMPTS):
        reference = f"{settings.BOOKING_REFERENCE_PREFIX}-{year}-{secrets.token_hex(3).upper()}"
        taken = await db.execute(
            select(Booking.id).where(Booking.booking_reference == reference)
        )
        if taken.scalar_one_or_none() is None:
            return reference
    # The unique constraint is the final safety net; running out of attempts
    # means the reference space for the year is nearly exhausted
    raise ConflictError("Could not allocate a unique booking reference")


async def create_booking(
    db: AsyncSession,
    visitor: VisitorInfo,
    tour: TourDetails,
) -> BookingMutation:
    """
    Create a pending, unpaid booking priced from the pricing table.
    total_amount is fixed here and never recomputed.
    """
    name = (visitor.name or "").strip()
    missing = [
        field
        for field, value in (("name", name), ("email", visitor.email), ("visit_date", tour.visit_date))
        if not value
    ]
    if missing:
        _reject(
            "create",
            "validation",
            ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={"missing": missing},
            ),
        )

    total_amount = calculate_total_amount(
        tour.tour_type, tour.group_size, tour.number_of_people, tour.custom_duration
    )

    booking = Booking(
        booking_reference=await _generate_reference(db),
        visitor_name=name,
        visitor_email=str(visitor.email),
        visitor_phone=visitor.phone,
        visit_date=tour.visit_date,
        visit_time=tour.visit_time,
        tour_type=tour.tour_type.value,
        group_size=tour.group_size.value,
        number_of_people=tour.number_of_people,
        custom_duration=tour.custom_duration,
        special_requests=tour.special_requests,
        payment_method=tour.payment_method.value,
        status=BookingStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        total_amount=total_amount,
        version=1,
    )
    db.add(booking)
    await db.flush()
    await db.refresh(booking)

    activity = await record_activity(
        db,
        booking.id,
        "created",
        None,
        BookingStatus.PENDING.value,
        f"Booking {booking.booking_reference} created for {name}",
    )

    record_booking_mutation("created")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        reference=booking.booking_reference,
        tour_type=booking.tour_type,
        group_size=booking.group_size,
        total_amount=total_amount,
    )
    return BookingMutation(booking, activity)


async def transition_booking(
    db: AsyncSession,
    booking_id: int,
    new_status: BookingStatus,
    expected_version: Optional[int] = None,
) -> BookingMutation:
    booking = await _load_for_update(db, booking_id, expected_version, "transition")
    current = BookingStatus(booking.status)
    target = BookingStatus(new_status)

    if not can_transition(current, target):
        _reject(
            "transition",
            "invalid_transition",
            InvalidTransitionError(
                f"Cannot move booking from {current.value} to {target.value}",
                current=current.value,
                target=target.value,
            ),
            booking_id=booking_id,
        )

    await _compare_and_swap(
        db,
        booking,
        "transition",
        Booking.status == current.value,
        status=target.value,
    )
    activity = await record_activity(
        db,
        booking.id,
        "status_changed",
        current.value,
        target.value,
        f"Status changed from {current.value} to {target.value}",
    )

    record_booking_mutation("status_changed")
    logger.info(
        "booking_transitioned",
        booking_id=booking.id,
        old_status=current.value,
        new_status=target.value,
        version=booking.version,
    )
    return BookingMutation(booking, activity)


async def assign_guide(
    db: AsyncSession,
    booking_id: int,
    guide_id: int,
    expected_version: Optional[int] = None,
) -> BookingMutation:
    """Assign (or reassign) a guide. Re-assigning the current guide is a no-op."""
    booking = await _load_for_update(db, booking_id, expected_version, "assign_guide")
    guide = await db.get(Guide, guide_id)
    if guide is None:
        raise NotFoundError("Guide", guide_id)

    current = BookingStatus(booking.status)
    if current not in ASSIGNABLE_STATUSES:
        _reject(
            "assign_guide",
            "invalid_transition",
            InvalidTransitionError(
                f"Cannot assign a guide to a {current.value} booking", current=current.value
            ),
            booking_id=booking_id,
        )
    if not guide.is_active:
        _reject(
            "assign_guide",
            "inactive_guide",
            AuthorizationError(f"Guide {guide_id} is inactive and cannot be assigned"),
            booking_id=booking_id,
            guide_id=guide_id,
        )

    previous_guide_id = booking.assigned_guide_id
    if previous_guide_id == guide_id:
        return BookingMutation(booking, None)

    await _compare_and_swap(
        db,
        booking,
        "assign_guide",
        Booking.status.in_([s.value for s in ASSIGNABLE_STATUSES]),
        assigned_guide_id=guide_id,
    )
    action = "assigned" if previous_guide_id is None else "reassigned"
    activity = await record_activity(
        db,
        booking.id,
        action,
        booking.status,
        None,
        f"Guide {guide.name} {action}",
    )

    record_booking_mutation(action)
    logger.info(
        "guide_assigned",
        booking_id=booking.id,
        guide_id=guide_id,
        previous_guide_id=previous_guide_id,
    )
    return BookingMutation(booking, activity)


async def check_in(
    db: AsyncSession,
    booking_id: int,
    expected_version: Optional[int] = None,
    at: Optional[datetime] = None,
) -> BookingMutation:
    """Stamp check_in_time on a confirmed booking. Status stays confirmed."""
    booking = await _load_for_update(db, booking_id, expected_version, "check_in")

    if booking.status != BookingStatus.CONFIRMED.value:
        _reject(
            "check_in",
            "invalid_transition",
            InvalidTransitionError(
                f"Only confirmed bookings can be checked in (booking is {booking.status})",
                current=booking.status,
            ),
            booking_id=booking_id,
        )
    if booking.check_in_time is not None:
        _reject(
            "check_in",
            "invalid_transition",
            InvalidTransitionError(f"Booking {booking_id} is already checked in"),
            booking_id=booking_id,
        )

    checked_in_at = ensure_utc(at) or utcnow()
    await _compare_and_swap(
        db,
        booking,
        "check_in",
        Booking.status == BookingStatus.CONFIRMED.value,
        Booking.check_in_time.is_(None),
        check_in_time=checked_in_at,
    )
    activity = await record_activity(
        db,
        booking.id,
        "tour_started",
        booking.status,
        None,
        f"Visitor checked in at {checked_in_at:%Y-%m-%d %H:%M} UTC",
    )

    record_booking_mutation("tour_started")
    logger.info("tour_checked_in", booking_id=booking.id, check_in_time=checked_in_at.isoformat())
    return BookingMutation(booking, activity)


async def check_out(
    db: AsyncSession,
    booking_id: int,
    expected_version: Optional[int] = None,
    at: Optional[datetime] = None,
) -> BookingMutation:
    """
    Complete a tour via check-out.

    check_out_time and status=completed are written by the same UPDATE, so a
    booking can never be checked out but still confirmed.
    """
    booking = await _load_for_update(db, booking_id, expected_version, "check_out")

    if booking.check_in_time is None:
        _reject(
            "check_out",
            "invalid_transition",
            InvalidTransitionError(f"Booking {booking_id} has not been checked in"),
            booking_id=booking_id,
        )
    if booking.check_out_time is not None:
        _reject(
            "check_out",
            "invalid_transition",
            InvalidTransitionError(f"Booking {booking_id} is already checked out"),
            booking_id=booking_id,
        )
    if booking.status != BookingStatus.CONFIRMED.value:
        _reject(
            "check_out",
            "invalid_transition",
            InvalidTransitionError(
                f"Cannot complete a {booking.status} booking",
                current=booking.status,
                target=BookingStatus.COMPLETED.value,
            ),
            booking_id=booking_id,
        )

    checked_in_at = ensure_utc(booking.check_in_time)
    checked_out_at = ensure_utc(at) or utcnow()
    if checked_out_at < checked_in_at:
        _reject(
            "check_out",
            "validation",
            ValidationError("Check-out time cannot be earlier than check-in time"),
            booking_id=booking_id,
        )

    await _compare_and_swap(
        db,
        booking,
        "check_out",
        Booking.status == BookingStatus.CONFIRMED.value,
        Booking.check_in_time.is_not(None),
        Booking.check_out_time.is_(None),
        check_out_time=checked_out_at,
        status=BookingStatus.COMPLETED.value,
    )
    duration = _format_duration(checked_in_at, checked_out_at)
    activity = await record_activity(
        db,
        booking.id,
        "tour_completed",
        BookingStatus.CONFIRMED.value,
        BookingStatus.COMPLETED.value,
        f"Tour completed in {duration}",
    )

    record_booking_mutation("tour_completed")
    logger.info(
        "tour_completed",
        booking_id=booking.id,
        guide_id=booking.assigned_guide_id,
        duration=duration,
    )
    return BookingMutation(booking, activity)


async def update_payment_status(
    db: AsyncSession,
    booking_id: int,
    payment_status: PaymentStatus,
    payment_reference: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> BookingMutation:
    """
    Move the payment axis to any value. Independent of the status axis;
    only completed+paid bookings count towards guide earnings.
    """
    booking = await _load_for_update(db, booking_id, expected_version, "update_payment")
    old = PaymentStatus(booking.payment_status)
    new = PaymentStatus(payment_status)

    if old == new and (payment_reference is None or payment_reference == booking.payment_reference):
        return BookingMutation(booking, None)

    values = {"payment_status": new.value}
    if payment_reference is not None:
        values["payment_reference"] = payment_reference
    if new == PaymentStatus.PAID and old != PaymentStatus.PAID:
        values["payment_verified_at"] = utcnow()

    await _compare_and_swap(db, booking, "update_payment", **values)
    activity = await record_activity(
        db,
        booking.id,
        "payment_updated",
        booking.status,
        None,
        f"Payment status changed from {old.value} to {new.value}",
    )

    record_booking_mutation("payment_updated")
    logger.info(
        "payment_status_updated",
        booking_id=booking.id,
        old_payment_status=old.value,
        new_payment_status=new.value,
    )
    return BookingMutation(booking, activity)


async def update_notes(
    db: AsyncSession,
    booking_id: int,
    notes: str,
    expected_version: Optional[int] = None,
) -> BookingMutation:
    booking = await _load_for_update(db, booking_id, expected_version, "update_notes")

    await _compare_and_swap(db, booking, "update_notes", admin_notes=notes)
    activity = await record_activity(
        db, booking.id, "notes_updated", booking.status, None, "Admin notes updated"
    )

    record_booking_mutation("notes_updated")
    logger.info("booking_notes_updated", booking_id=booking.id)
    return BookingMutation(booking, activity)
