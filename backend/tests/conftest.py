"""
Pytest fixtures for test database, client, guides and bookings.

Each test gets a fresh SQLite database file (or TEST_DATABASE_URL when set)
with the schema created up front and dropped afterwards.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./tourdesk_import.db")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from tourdesk.main import app
from tourdesk.db.base import Base
from tourdesk.db.session import get_db
from tourdesk.models.booking import Booking
from tourdesk.models.enums import BookingStatus, PaymentStatus
from tourdesk.models.guide import Guide
from tourdesk.services import booking_service

from factories import tour, visitor


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path):
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'tourdesk_test.db'}"
    engine = create_async_engine(url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def active_guide(db_session: AsyncSession) -> Guide:
    guide = Guide(name="Chikondi Banda", phone="+265991000001", is_active=True)
    db_session.add(guide)
    await db_session.commit()
    await db_session.refresh(guide)
    return guide


@pytest_asyncio.fixture
async def second_guide(db_session: AsyncSession) -> Guide:
    guide = Guide(name="Takondwa Phiri", phone="+265991000002", is_active=True)
    db_session.add(guide)
    await db_session.commit()
    await db_session.refresh(guide)
    return guide


@pytest_asyncio.fixture
async def inactive_guide(db_session: AsyncSession) -> Guide:
    guide = Guide(name="Retired Guide", phone="+265991000009", is_active=False)
    db_session.add(guide)
    await db_session.commit()
    await db_session.refresh(guide)
    return guide


@pytest_asyncio.fixture
async def pending_booking(db_session: AsyncSession) -> Booking:
    """A freshly created standard individual booking (15000)."""
    mutation = await booking_service.create_booking(db_session, visitor(), tour())
    await db_session.commit()
    return mutation.booking


@pytest_asyncio.fixture
async def confirmed_booking(db_session: AsyncSession, pending_booking: Booking) -> Booking:
    mutation = await booking_service.transition_booking(
        db_session, pending_booking.id, BookingStatus.CONFIRMED
    )
    await db_session.commit()
    return mutation.booking


@pytest.fixture
def add_booking(db_session: AsyncSession):
    """
    Insert a booking row directly, bypassing the lifecycle. Used to lay out
    revenue and payout scenarios in a single step.
    """
    counter = {"n": 0}

    async def _add(
        total_amount: int,
        status: BookingStatus = BookingStatus.COMPLETED,
        payment_status: PaymentStatus = PaymentStatus.PAID,
        guide_id=None,
        visit_date: date = None,
        **fields,
    ) -> Booking:
        counter["n"] += 1
        booking = Booking(
            booking_reference=f"DVS-TEST-{counter['n']:06d}",
            visitor_name="Scenario Visitor",
            visitor_email="visitor@example.com",
            visit_date=visit_date or date.today(),
            total_amount=total_amount,
            status=BookingStatus(status).value,
            payment_status=PaymentStatus(payment_status).value,
            assigned_guide_id=guide_id,
            **fields,
        )
        db_session.add(booking)
        await db_session.commit()
        await db_session.refresh(booking)
        return booking

    return _add
