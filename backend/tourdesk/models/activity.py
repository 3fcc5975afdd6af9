"""
Append-only booking activity log. Rows are written by booking mutations in
the same transaction and are never updated or deleted.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, func

from tourdesk.core.clock import utcnow
from tourdesk.db.base import Base


class ActivityRecord(Base):
    __tablename__ = "booking_activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    action = Column(String(50), nullable=False)
    old_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_activity_booking_created", "booking_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ActivityRecord(booking={self.booking_id}, action={self.action})>"
