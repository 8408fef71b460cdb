"""
DoujinDesk API - Main Application Entry Point

Ticketing and operations backend for a doujin/comic convention:
- Ticket catalog with early-bird pricing and non-stacking discounts
- Oversell-proof checkout with optimistic locking on ticket capacity
- QR/RFID gate validation with a one-way admission latch and offline sync
- Financial ledger with refund workflow and exchange rates
- Circle (vendor) applications and review
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from doujindesk.core.config import get_settings
from doujindesk.core.logging import setup_logging, get_logger
from doujindesk.core.metrics import metrics_endpoint
from doujindesk.api.router import api_router
from doujindesk.api.middleware import RequestLoggingMiddleware
from doujindesk.db.session import AsyncSessionLocal
from doujindesk.services.catalog_service import seed_ticket_types
from doujindesk.services.finance_service import seed_exchange_rates
from doujindesk.services.cache_service import get_redis, close_redis, get_cache_stats

settings = get_settings()


async def seed_reference_data() -> None:
    """Default ticket types and exchange rates for a fresh database."""
    logger = get_logger(__name__)
    async with AsyncSessionLocal() as session:
        types_added = await seed_ticket_types(session)
        rates_added = await seed_exchange_rates(session)
        await session.commit()
    if types_added or rates_added:
        logger.info("reference_data_seeded", ticket_types=types_added, exchange_rates=rates_added)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        event_id=settings.EVENT_ID,
    )

    if settings.ENVIRONMENT != "test":
        await seed_reference_data()

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Convention ticketing, gate validation and vendor operations API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "event": settings.EVENT_ID,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "event": settings.EVENT_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
