"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from tourdesk.api.routes import bookings, guides, payouts, revenue

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(bookings.router)
api_router.include_router(guides.router)
api_router.include_router(revenue.router)
api_router.include_router(payouts.router)
