"""
Guide payout ledger.

Key design decisions:
- A payout is a point-in-time snapshot; it never marks bookings as settled
- `snapshot_key` fingerprints the completed+paid tour set the payout was
  computed from; (guide_id, snapshot_key) is unique so double submissions
  for the same tours cannot both land
- pending -> paid is the only transition, enforced by a conditional UPDATE
"""

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
    UniqueConstraint,
)

from tourdesk.db.base import Base, TimestampMixin
from tourdesk.models.enums import PayoutStatus, sql_in


class PayoutRecord(Base, TimestampMixin):
    __tablename__ = "guide_payouts"

    id = Column(Integer, primary_key=True, index=True)
    guide_id = Column(Integer, ForeignKey("guides.id"), nullable=False)
    amount = Column(Integer, nullable=False)
    tours_count = Column(Integer, nullable=False, default=0)
    period_start = Column(Date, nullable=True)
    period_end = Column(Date, nullable=True)
    snapshot_key = Column(String(128), nullable=False)
    status = Column(String(20), nullable=False, default=PayoutStatus.PENDING.value)
    payment_method = Column(String(50), nullable=True)
    payment_reference = Column(String(100), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("guide_id", "snapshot_key", name="uq_payout_guide_snapshot"),
        CheckConstraint(f"status IN ({sql_in(PayoutStatus)})", name="check_payout_status"),
        CheckConstraint("amount > 0", name="check_payout_amount_positive"),
        CheckConstraint("tours_count >= 0", name="check_payout_tours_non_negative"),
        CheckConstraint(
            "status <> 'paid' OR (paid_at IS NOT NULL AND payment_method IS NOT NULL)",
            name="check_paid_payout_settled",
        ),
        Index("ix_payouts_guide", "guide_id"),
        Index("ix_payouts_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<PayoutRecord(id={self.id}, guide={self.guide_id}, amount={self.amount}, status={self.status})>"
