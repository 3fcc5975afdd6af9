from tourdesk.models.activity import ActivityRecord
from tourdesk.models.booking import Booking
from tourdesk.models.guide import Guide
from tourdesk.models.payout import PayoutRecord

__all__ = ["ActivityRecord", "Booking", "Guide", "PayoutRecord"]
