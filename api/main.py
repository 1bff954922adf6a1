"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, metrics, runs, schedules, sync
from api.dependencies import scheduler
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.logging import setup_logging
import logging

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Grant Sync API",
    description="Health, metrics and manual trigger surface for the grant synchronization pipeline",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(schedules.router)
app.include_router(runs.router)
app.include_router(sync.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Grant Sync API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled by configuration")
        return

    try:
        await scheduler.initialize()
    except Exception as e:
        # The API stays up for health checks
        logger.error(f"Scheduler failed to start: {e}", exc_info=True)


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Grant Sync API")
    scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Grant Sync API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "metrics": "/metrics",
            "schedules": "/schedules",
            "runs": "/runs",
            "sync": "/sync"
        }
    }
