"""
Booking endpoints: creation, lifecycle transitions, check-in/out, payment.

Every mutation returns the updated booking together with the activity record
it emitted. Pass `expected_version` to have a stale read rejected with 409.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tourdesk.db.session import get_db
from tourdesk.models.enums import BookingStatus
from tourdesk.schemas.booking import (
    ActivityResponse,
    AssignGuideRequest,
    BookingCreate,
    BookingMutationResponse,
    BookingResponse,
    BookingTransitionRequest,
    NotesUpdate,
    PaymentStatusUpdate,
    VersionedRequest,
)
from tourdesk.services import booking_service
from tourdesk.services.activity_service import list_for_booking
from tourdesk.services.booking_service import BookingMutation

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _mutation_response(mutation: BookingMutation) -> BookingMutationResponse:
    return BookingMutationResponse(
        booking=BookingResponse.model_validate(mutation.booking),
        activity=(
            ActivityResponse.model_validate(mutation.activity) if mutation.activity else None
        ),
    )


@router.post("/", response_model=BookingMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(booking_data: BookingCreate, db: AsyncSession = Depends(get_db)):
    """Create a pending booking. The price is computed once and frozen."""
    mutation = await booking_service.create_booking(db, booking_data.visitor, booking_data.tour)
    return _mutation_response(mutation)


@router.get("/", response_model=list[BookingResponse])
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    guide_id: Optional[int] = Query(None),
    visit_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.list_bookings(db, status_filter, guide_id, visit_date)


@router.get("/reference/{reference}", response_model=BookingResponse)
async def get_booking_by_reference(reference: str, db: AsyncSession = Depends(get_db)):
    return await booking_service.get_booking_by_reference(db, reference)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: int, db: AsyncSession = Depends(get_db)):
    return await booking_service.get_booking(db, booking_id)


@router.get("/{booking_id}/activity", response_model=list[ActivityResponse])
async def get_booking_activity(booking_id: int, db: AsyncSession = Depends(get_db)):
    """Timeline of changes, oldest first."""
    return await list_for_booking(db, booking_id)


@router.post("/{booking_id}/transition", response_model=BookingMutationResponse)
async def transition_booking(
    booking_id: int,
    body: BookingTransitionRequest,
    db: AsyncSession = Depends(get_db),
):
    mutation = await booking_service.transition_booking(
        db, booking_id, body.status, body.expected_version
    )
    return _mutation_response(mutation)


@router.post("/{booking_id}/assign-guide", response_model=BookingMutationResponse)
async def assign_guide(
    booking_id: int,
    body: AssignGuideRequest,
    db: AsyncSession = Depends(get_db),
):
    mutation = await booking_service.assign_guide(
        db, booking_id, body.guide_id, body.expected_version
    )
    return _mutation_response(mutation)


@router.post("/{booking_id}/check-in", response_model=BookingMutationResponse)
async def check_in(
    booking_id: int,
    body: Optional[VersionedRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    expected_version = body.expected_version if body else None
    mutation = await booking_service.check_in(db, booking_id, expected_version)
    return _mutation_response(mutation)


@router.post("/{booking_id}/check-out", response_model=BookingMutationResponse)
async def check_out(
    booking_id: int,
    body: Optional[VersionedRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """Check the visitor out and complete the tour in a single write."""
    expected_version = body.expected_version if body else None
    mutation = await booking_service.check_out(db, booking_id, expected_version)
    return _mutation_response(mutation)


@router.patch("/{booking_id}/payment", response_model=BookingMutationResponse)
async def update_payment_status(
    booking_id: int,
    body: PaymentStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    mutation = await booking_service.update_payment_status(
        db, booking_id, body.payment_status, body.payment_reference, body.expected_version
    )
    return _mutation_response(mutation)


@router.patch("/{booking_id}/notes", response_model=BookingMutationResponse)
async def update_notes(
    booking_id: int,
    body: NotesUpdate,
    db: AsyncSession = Depends(get_db),
):
    mutation = await booking_service.update_notes(db, booking_id, body.notes, body.expected_version)
    return _mutation_response(mutation)
