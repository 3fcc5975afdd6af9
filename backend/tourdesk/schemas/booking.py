"""
Pydantic schemas for booking-related request/response validation.

Visitor name, email and visit date are optional at the schema level so that
the booking service, not the request parser, decides what is missing.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from tourdesk.models.enums import (
    BookingStatus,
    GroupSize,
    PaymentMethod,
    PaymentStatus,
    TourType,
)


class VisitorInfo(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)


class TourDetails(BaseModel):
    visit_date: Optional[date] = None
    visit_time: Optional[time] = None
    tour_type: TourType = TourType.STANDARD
    group_size: GroupSize = GroupSize.INDIVIDUAL
    number_of_people: int = Field(default=1, gt=0, le=500)
    custom_duration: Optional[int] = Field(None, gt=0, le=12)
    payment_method: PaymentMethod = PaymentMethod.CASH
    special_requests: Optional[str] = Field(None, max_length=2000)


class BookingCreate(BaseModel):
    visitor: VisitorInfo
    tour: TourDetails


class VersionedRequest(BaseModel):
    # Version the caller last read; a mismatch is rejected as a conflict
    expected_version: Optional[int] = Field(None, gt=0)


class BookingTransitionRequest(VersionedRequest):
    status: BookingStatus


class AssignGuideRequest(VersionedRequest):
    guide_id: int


class PaymentStatusUpdate(VersionedRequest):
    payment_status: PaymentStatus
    payment_reference: Optional[str] = Field(None, max_length=100)


class NotesUpdate(VersionedRequest):
    notes: str = Field(..., max_length=5000)


class BookingResponse(BaseModel):
    id: int
    booking_reference: str
    visitor_name: str
    visitor_email: str
    visitor_phone: Optional[str]
    visit_date: date
    visit_time: Optional[time]
    tour_type: TourType
    group_size: GroupSize
    number_of_people: int
    custom_duration: Optional[int]
    status: BookingStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    payment_reference: Optional[str]
    total_amount: int
    assigned_guide_id: Optional[int]
    check_in_time: Optional[datetime]
    check_out_time: Optional[datetime]
    tour_duration: Optional[timedelta]
    admin_notes: Optional[str]
    version: int
    created_at: datetime

    model_config = {"from_attributes": True}


class ActivityResponse(BaseModel):
    id: int
    booking_id: int
    action: str
    old_status: Optional[str]
    new_status: Optional[str]
    description: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingMutationResponse(BaseModel):
    booking: BookingResponse
    activity: Optional[ActivityResponse] = None
