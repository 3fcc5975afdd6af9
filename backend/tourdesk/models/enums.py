"""
Closed enumerations for booking and payout state.

Values are stored as strings and constrained by CHECK constraints on the
tables, so the string value of each member is the persisted form.
"""

import enum


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    AIRTEL_MONEY = "airtel_money"
    TNM_MPAMBA = "tnm_mpamba"
    CASH = "cash"


class TourType(str, enum.Enum):
    STANDARD = "standard"
    EXTENDED = "extended"
    CUSTOM = "custom"


class GroupSize(str, enum.Enum):
    INDIVIDUAL = "individual"
    SMALL_GROUP = "small_group"
    LARGE_GROUP = "large_group"
    CUSTOM = "custom"


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


def sql_in(enum_cls) -> str:
    """Render the members of an enum as a SQL IN list for CHECK constraints."""
    return ", ".join(f"'{member.value}'" for member in enum_cls)
