"""
FastAPI main application entry point — LessonHub session core.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from lessonhub import __version__
from lessonhub.core.config import settings
from lessonhub.core.logging import setup_logging
from lessonhub.middleware.cors import get_cors_config
from lessonhub.middleware.error_handler import setup_error_handlers
from lessonhub.middleware.rate_limit import setup_rate_limiting
from lessonhub.api.v1.router import router as v1_router

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Create FastAPI application
# ---------------------------------------------------------------------------
app = FastAPI(
    title="LessonHub — Session Core",
    description=(
        "Bookable slots, booking drafts, live-room join gating and session timers "
        "for the mentor/mentee lesson marketplace."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Rate limiter and error handlers
setup_rate_limiting(app)
setup_error_handlers(app)

# Add CORS middleware
app.add_middleware(CORSMiddleware, **get_cors_config())

# Include API routers
app.include_router(v1_router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event():
    """Log effective configuration on startup."""
    logger.info("=" * 60)
    logger.info("  LessonHub session core starting up")
    logger.info("=" * 60)
    logger.info(f"  Environment  : {settings.API_ENV}")
    logger.info(f"  Sessions API : {settings.SESSIONS_API_URL} (timeout {settings.SESSIONS_API_TIMEOUT_SECONDS}s)")
    logger.info(f"  Read cache   : {settings.SESSION_CACHE_TTL_SECONDS}s")
    logger.info(f"  Draft TTL    : {settings.BOOKING_DRAFT_TTL_SECONDS}s")
    logger.info(f"  Rate limit   : {settings.RATE_LIMIT_BOOKING} (booking)")
    logger.info("=" * 60)


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("=== Shutting down LessonHub session core ===")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "lessonhub.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_RELOAD,
    )
