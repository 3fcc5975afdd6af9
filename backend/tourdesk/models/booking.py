"""
Booking model: one guided tour from request to completion.

Key design decisions:
- `version` column enables optimistic locking; every mutation is a
  compare-and-swap on (id, version) and bumps the version
- `total_amount` is priced once at creation and never recomputed
- Cancellation is a terminal status, bookings are never deleted
- CHECK constraints keep status/payment values closed and the
  check-in/check-out timestamps consistent at the DB level
"""

from datetime import timedelta
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
)

from tourdesk.core.clock import ensure_utc
from tourdesk.db.base import Base, TimestampMixin
from tourdesk.models.enums import (
    BookingStatus,
    GroupSize,
    PaymentMethod,
    PaymentStatus,
    TourType,
    sql_in,
)


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    booking_reference = Column(String(32), unique=True, nullable=False, index=True)

    # Visitor contact
    visitor_name = Column(String(255), nullable=False)
    visitor_email = Column(String(255), nullable=False)
    visitor_phone = Column(String(50), nullable=True)

    # Tour details
    visit_date = Column(Date, nullable=False)
    visit_time = Column(Time, nullable=True)
    tour_type = Column(String(20), nullable=False, default=TourType.STANDARD.value)
    group_size = Column(String(20), nullable=False, default=GroupSize.INDIVIDUAL.value)
    number_of_people = Column(Integer, nullable=False, default=1)
    custom_duration = Column(Integer, nullable=True)  # hours, custom tours only
    special_requests = Column(Text, nullable=True)

    # Lifecycle
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)
    payment_reference = Column(String(100), nullable=True)
    payment_verified_at = Column(DateTime(timezone=True), nullable=True)
    total_amount = Column(Integer, nullable=False)
    assigned_guide_id = Column(Integer, ForeignKey("guides.id"), nullable=True, index=True)
    check_in_time = Column(DateTime(timezone=True), nullable=True)
    check_out_time = Column(DateTime(timezone=True), nullable=True)
    admin_notes = Column(Text, nullable=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint(f"status IN ({sql_in(BookingStatus)})", name="check_booking_status"),
        CheckConstraint(
            f"payment_status IN ({sql_in(PaymentStatus)})", name="check_booking_payment_status"
        ),
        CheckConstraint(
            f"payment_method IN ({sql_in(PaymentMethod)})", name="check_booking_payment_method"
        ),
        CheckConstraint(f"tour_type IN ({sql_in(TourType)})", name="check_booking_tour_type"),
        CheckConstraint(f"group_size IN ({sql_in(GroupSize)})", name="check_booking_group_size"),
        CheckConstraint("number_of_people > 0", name="check_booking_people_positive"),
        CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
        CheckConstraint(
            "check_out_time IS NULL OR check_in_time IS NOT NULL",
            name="check_checkout_requires_checkin",
        ),
        CheckConstraint(
            "check_out_time IS NULL OR status = 'completed'",
            name="check_checkout_implies_completed",
        ),
        # Revenue queries filter by guide and recognise revenue on visit date
        Index("ix_bookings_visit_date", "visit_date"),
        Index("ix_bookings_guide_status", "assigned_guide_id", "status"),
    )

    @property
    def tour_duration(self) -> Optional[timedelta]:
        if self.check_in_time is None or self.check_out_time is None:
            return None
        return ensure_utc(self.check_out_time) - ensure_utc(self.check_in_time)

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, ref={self.booking_reference}, status={self.status}, "
            f"payment={self.payment_status}, version={self.version})>"
        )
