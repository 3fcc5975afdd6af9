from tourdesk.schemas.booking import (
    ActivityResponse,
    AssignGuideRequest,
    BookingCreate,
    BookingMutationResponse,
    BookingResponse,
    BookingTransitionRequest,
    NotesUpdate,
    PaymentStatusUpdate,
    TourDetails,
    VisitorInfo,
)
from tourdesk.schemas.guide import GuideResponse
from tourdesk.schemas.payout import (
    PayoutCreate,
    PayoutMarkPaid,
    PayoutMutationResponse,
    PayoutResponse,
    PayoutSummary,
)
from tourdesk.schemas.revenue import GuideEarnings, RevenueFilters, RevenueReport

__all__ = [
    "VisitorInfo", "TourDetails", "BookingCreate", "BookingResponse",
    "BookingTransitionRequest", "AssignGuideRequest", "PaymentStatusUpdate", "NotesUpdate",
    "ActivityResponse", "BookingMutationResponse",
    "GuideResponse",
    "PayoutCreate", "PayoutMarkPaid", "PayoutResponse", "PayoutSummary", "PayoutMutationResponse",
    "GuideEarnings", "RevenueFilters", "RevenueReport",
]
