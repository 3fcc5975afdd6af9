"""Initial schema: guides, bookings, booking activity log, guide payouts.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Guides (reference data, read by the booking core)
    op.create_table(
        "guides",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("ledger_version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
    )
    op.create_index("ix_guides_id", "guides", ["id"])

    # Bookings
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_reference", sa.String(32), nullable=False),
        sa.Column("visitor_name", sa.String(255), nullable=False),
        sa.Column("visitor_email", sa.String(255), nullable=False),
        sa.Column("visitor_phone", sa.String(50), nullable=True),
        sa.Column("visit_date", sa.Date(), nullable=False),
        sa.Column("visit_time", sa.Time(), nullable=True),
        sa.Column("tour_type", sa.String(20), nullable=False, server_default=sa.text("'standard'")),
        sa.Column("group_size", sa.String(20), nullable=False, server_default=sa.text("'individual'")),
        sa.Column("number_of_people", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("custom_duration", sa.Integer(), nullable=True),
        sa.Column("special_requests", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default=sa.text("'cash'")),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        sa.Column("payment_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column("assigned_guide_id", sa.Integer(), sa.ForeignKey("guides.id"), nullable=True),
        sa.Column("check_in_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')", name="check_booking_status"
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded')", name="check_booking_payment_status"
        ),
        sa.CheckConstraint(
            "payment_method IN ('airtel_money', 'tnm_mpamba', 'cash')", name="check_booking_payment_method"
        ),
        sa.CheckConstraint(
            "tour_type IN ('standard', 'extended', 'custom')", name="check_booking_tour_type"
        ),
        sa.CheckConstraint(
            "group_size IN ('individual', 'small_group', 'large_group', 'custom')",
            name="check_booking_group_size",
        ),
        sa.CheckConstraint("number_of_people > 0", name="check_booking_people_positive"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
        sa.CheckConstraint(
            "check_out_time IS NULL OR check_in_time IS NOT NULL", name="check_checkout_requires_checkin"
        ),
        sa.CheckConstraint(
            "check_out_time IS NULL OR status = 'completed'", name="check_checkout_implies_completed"
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_booking_reference", "bookings", ["booking_reference"], unique=True)
    op.create_index("ix_bookings_assigned_guide_id", "bookings", ["assigned_guide_id"])
    # Revenue is recognised on visit date; every report range-filters on it
    op.create_index("ix_bookings_visit_date", "bookings", ["visit_date"])
    # Per-guide earnings: WHERE assigned_guide_id = ? AND status = 'completed'
    op.create_index("ix_bookings_guide_status", "bookings", ["assigned_guide_id", "status"])

    # Append-only activity log
    op.create_table(
        "booking_activity_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("old_status", sa.String(20), nullable=True),
        sa.Column("new_status", sa.String(20), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_booking_activity_logs_id", "booking_activity_logs", ["id"])
    op.create_index("ix_activity_booking_created", "booking_activity_logs", ["booking_id", "created_at"])

    # Guide payouts
    op.create_table(
        "guide_payouts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("guide_id", sa.Integer(), sa.ForeignKey("guides.id"), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("tours_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("period_end", sa.Date(), nullable=True),
        sa.Column("snapshot_key", sa.String(128), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("payment_reference", sa.String(100), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        # One payout per guide per completed-tour set
        sa.UniqueConstraint("guide_id", "snapshot_key", name="uq_payout_guide_snapshot"),
        sa.CheckConstraint("status IN ('pending', 'paid')", name="check_payout_status"),
        sa.CheckConstraint("amount > 0", name="check_payout_amount_positive"),
        sa.CheckConstraint("tours_count >= 0", name="check_payout_tours_non_negative"),
        sa.CheckConstraint(
            "status <> 'paid' OR (paid_at IS NOT NULL AND payment_method IS NOT NULL)",
            name="check_paid_payout_settled",
        ),
    )
    op.create_index("ix_guide_payouts_id", "guide_payouts", ["id"])
    op.create_index("ix_payouts_guide", "guide_payouts", ["guide_id"])
    op.create_index("ix_payouts_status", "guide_payouts", ["status"])


def downgrade() -> None:
    op.drop_table("guide_payouts")
    op.drop_table("booking_activity_logs")
    op.drop_table("bookings")
    op.drop_table("guides")
