"""
Tour Desk API - Main Application Entry Point

Guided-tour booking lifecycle and guide payout ledger:
- Booking state machine with optimistic-locking compare-and-swap writes
- Append-only activity log per booking
- Stateless revenue aggregation recomputed per request
- Payout ledger with duplicate-submission protection
- Structured logging with request/operator correlation
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tourdesk.api.middleware import RequestLoggingMiddleware
from tourdesk.api.router import api_router
from tourdesk.core.config import get_settings
from tourdesk.core.exceptions import ConflictError, TourDeskError
from tourdesk.core.logging import get_logger, setup_logging
from tourdesk.core.metrics import metrics_endpoint
from tourdesk.services.submission_guard import close_redis, get_guard_status, get_redis

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        guide_share_rate=str(settings.GUIDE_SHARE_RATE),
        enforce_payout_share_limit=settings.ENFORCE_PAYOUT_SHARE_LIMIT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Payout submissions guarded by database only")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Guided-tour booking lifecycle, revenue reporting and guide payouts",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.exception_handler(TourDeskError)
async def tourdesk_error_handler(request: Request, exc: TourDeskError) -> JSONResponse:
    headers = {"Retry-After": "0"} if isinstance(exc, ConflictError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error_code": exc.error_code, "context": exc.details},
        headers=headers,
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "submission_guard": await get_guard_status(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
