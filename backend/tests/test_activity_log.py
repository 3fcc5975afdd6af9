"""
Tests for the append-only booking activity log.
"""

import pytest

from tourdesk.core.exceptions import InvalidTransitionError, NotFoundError
from tourdesk.models.enums import BookingStatus, PaymentStatus
from tourdesk.services import booking_service
from tourdesk.services.activity_service import list_for_booking


@pytest.mark.asyncio
async def test_full_lifecycle_timeline(db_session, pending_booking, active_guide):
    """Every successful change appends exactly one record, oldest first."""
    booking_id = pending_booking.id
    await booking_service.assign_guide(db_session, booking_id, active_guide.id)
    await booking_service.transition_booking(db_session, booking_id, BookingStatus.CONFIRMED)
    await booking_service.update_payment_status(db_session, booking_id, PaymentStatus.PAID)
    await booking_service.check_in(db_session, booking_id)
    await booking_service.check_out(db_session, booking_id)

    records = await list_for_booking(db_session, booking_id)
    assert [r.action for r in records] == [
        "created",
        "assigned",
        "status_changed",
        "payment_updated",
        "tour_started",
        "tour_completed",
    ]
    assert records[-1].old_status == BookingStatus.CONFIRMED.value
    assert records[-1].new_status == BookingStatus.COMPLETED.value
    assert [r.id for r in records] == sorted(r.id for r in records)


@pytest.mark.asyncio
async def test_rejected_change_writes_nothing(db_session, pending_booking):
    with pytest.raises(InvalidTransitionError):
        await booking_service.check_in(db_session, pending_booking.id)

    records = await list_for_booking(db_session, pending_booking.id)
    assert [r.action for r in records] == ["created"]


@pytest.mark.asyncio
async def test_noop_writes_nothing(db_session, pending_booking, active_guide):
    await booking_service.assign_guide(db_session, pending_booking.id, active_guide.id)
    await booking_service.assign_guide(db_session, pending_booking.id, active_guide.id)

    records = await list_for_booking(db_session, pending_booking.id)
    assert [r.action for r in records] == ["created", "assigned"]


@pytest.mark.asyncio
async def test_unknown_booking(db_session):
    with pytest.raises(NotFoundError):
        await list_for_booking(db_session, 31337)
