"""
Concurrency scenarios: two requests, two database sessions, one record.

Each test lines both requests up at the point just before their first write,
so both have validated against the same committed state. Exactly one write
may land; the other must be turned away with a ConflictError.
"""

import asyncio
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tourdesk.core.config import get_settings
from tourdesk.core.exceptions import ConflictError
from tourdesk.models.enums import BookingStatus, PaymentMethod, PayoutStatus
from tourdesk.schemas.payout import PayoutCreate
from tourdesk.services import booking_service, payout_service
from tourdesk.services.activity_service import list_for_booking

from factories import Rendezvous


def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.mark.asyncio
async def test_concurrent_settlements_cannot_exceed_share(
    db_engine, db_session, active_guide, add_booking, monkeypatch
):
    """Two pending payouts each worth the whole share; only one may be settled."""
    settings = get_settings()
    await add_booking(15000, guide_id=active_guide.id)

    monkeypatch.setattr(settings, "ENFORCE_PAYOUT_SHARE_LIMIT", False)
    first = await payout_service.create_payout(
        db_session, PayoutCreate(guide_id=active_guide.id, amount=15000)
    )
    second = await payout_service.create_payout(
        db_session, PayoutCreate(guide_id=active_guide.id, amount=15000, period_end=date.today())
    )
    await db_session.commit()
    monkeypatch.setattr(settings, "ENFORCE_PAYOUT_SHARE_LIMIT", True)

    rendezvous = Rendezvous(2)
    bump = payout_service._bump_ledger_version

    async def bump_after_both_checked(*args, **kwargs):
        await rendezvous.wait()
        await bump(*args, **kwargs)

    monkeypatch.setattr(payout_service, "_bump_ledger_version", bump_after_both_checked)
    sessions = session_factory(db_engine)

    async def settle(payout_id):
        async with sessions() as session:
            try:
                await payout_service.mark_payout_paid(session, payout_id, PaymentMethod.CASH)
                await session.commit()
                return "ok"
            except ConflictError:
                await session.rollback()
                return "conflict"

    results = await asyncio.gather(settle(first.id), settle(second.id))
    assert sorted(results) == ["conflict", "ok"]

    async with sessions() as session:
        summary = await payout_service.get_payout_summary(session)
        assert summary.total_paid_out == 15000
        assert summary.total_pending == 15000


@pytest.mark.asyncio
async def test_concurrent_creates_cannot_exceed_share(
    db_engine, active_guide, add_booking, monkeypatch
):
    """Two creates over different periods race for the same unpaid share."""
    await add_booking(15000, guide_id=active_guide.id)

    rendezvous = Rendezvous(2)
    bump = payout_service._bump_ledger_version

    async def bump_after_both_checked(*args, **kwargs):
        await rendezvous.wait()
        await bump(*args, **kwargs)

    monkeypatch.setattr(payout_service, "_bump_ledger_version", bump_after_both_checked)
    sessions = session_factory(db_engine)

    async def create(period_end):
        async with sessions() as session:
            try:
                await payout_service.create_payout(
                    session,
                    PayoutCreate(guide_id=active_guide.id, amount=10000, period_end=period_end),
                )
                await session.commit()
                return "ok"
            except ConflictError:
                await session.rollback()
                return "conflict"

    results = await asyncio.gather(create(None), create(date.today()))
    assert sorted(results) == ["conflict", "ok"]

    async with sessions() as session:
        payouts = await payout_service.list_payouts(session, guide_id=active_guide.id)
        assert [p.amount for p in payouts] == [10000]


@pytest.mark.asyncio
async def test_duplicate_insert_rejected_by_unique_constraint(
    db_engine, active_guide, add_booking, monkeypatch
):
    """Both submissions pass the pre-insert lookup; the unique key still admits one."""
    await add_booking(15000, guide_id=active_guide.id)

    rendezvous = Rendezvous(2)

    async def limit_check_after_both_looked_up(*args, **kwargs):
        await rendezvous.wait()

    monkeypatch.setattr(payout_service, "_check_share_limit", limit_check_after_both_looked_up)
    sessions = session_factory(db_engine)
    data = PayoutCreate(guide_id=active_guide.id, amount=15000, tours_count=1)

    async def submit():
        async with sessions() as session:
            try:
                await payout_service.create_payout(session, data)
                await session.commit()
                return None
            except ConflictError as e:
                await session.rollback()
                return e

    outcomes = await asyncio.gather(submit(), submit())
    errors = [o for o in outcomes if o is not None]
    assert len(errors) == 1
    # Raised from the insert, not from the lookup (which names the existing payout)
    assert errors[0].details == {}

    async with sessions() as session:
        payouts = await payout_service.list_payouts(session, guide_id=active_guide.id)
        assert len(payouts) == 1
        assert payouts[0].status == PayoutStatus.PENDING.value


@pytest.mark.asyncio
async def test_cancel_races_check_out(db_engine, db_session, confirmed_booking, monkeypatch):
    """One operator cancels while another checks the visitor out."""
    booking_id = confirmed_booking.id
    await booking_service.check_in(db_session, booking_id)
    await db_session.commit()
    checked_in = await booking_service.get_booking(db_session, booking_id)
    version_before = checked_in.version
    activity_before = len(await list_for_booking(db_session, booking_id))

    rendezvous = Rendezvous(2)
    compare_and_swap = booking_service._compare_and_swap

    async def swap_after_both_validated(*args, **kwargs):
        await rendezvous.wait()
        return await compare_and_swap(*args, **kwargs)

    monkeypatch.setattr(booking_service, "_compare_and_swap", swap_after_both_validated)
    sessions = session_factory(db_engine)

    async def run(operation):
        async with sessions() as session:
            try:
                await operation(session)
                await session.commit()
                return "ok"
            except ConflictError:
                await session.rollback()
                return "conflict"

    async def cancel(session):
        await booking_service.transition_booking(session, booking_id, BookingStatus.CANCELLED)

    async def check_out(session):
        await booking_service.check_out(session, booking_id)

    results = await asyncio.gather(run(cancel), run(check_out))
    assert sorted(results) == ["conflict", "ok"]

    async with sessions() as session:
        booking = await booking_service.get_booking(session, booking_id)
        assert booking.version == version_before + 1
        if booking.status == BookingStatus.CANCELLED.value:
            assert booking.check_out_time is None
        else:
            assert booking.status == BookingStatus.COMPLETED.value
            assert booking.check_out_time is not None
        assert len(await list_for_booking(session, booking_id)) == activity_before + 1
