"""
TicketPro Back-Office API - Main Application Entry Point

Travel-agency booking back office:
- 24-hour ticket holds with database-enforced exclusivity
- Compare-and-swap status transitions (confirm / cancel / expire)
- Exactly-once commission, notification and invoice side effects
- Scheduled expiry sweep and backups, Redis-cached inventory
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ticketpro.core.config import get_settings
from ticketpro.core.logging import setup_logging, get_logger
from ticketpro.core.metrics import metrics_endpoint
from ticketpro.api.errors import register_exception_handlers
from ticketpro.api.router import api_router
from ticketpro.api.middleware import RequestLoggingMiddleware
from ticketpro.services.cache_service import get_redis, close_redis, get_cache_stats
from ticketpro.services.scheduler import get_scheduler
from ticketpro.services.strategy_factory import close_capabilities

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    scheduler = get_scheduler()
    if settings.SCHEDULER_ENABLED:
        scheduler.start()

    yield

    await scheduler.stop()
    await close_capabilities()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Travel-agency back office with concurrency-safe ticket holds",
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
register_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "scheduler": settings.SCHEDULER_ENABLED,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
