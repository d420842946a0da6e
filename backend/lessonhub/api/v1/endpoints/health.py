from fastapi import APIRouter
from lessonhub import __version__
from lessonhub.core.config import settings
from lessonhub.schemas.common import HealthResponse

router = APIRouter()

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Get system health status.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "environment": settings.API_ENV,
        "components": {
            "sessions_api": settings.SESSIONS_API_URL,
            "draft_ttl": f"{settings.BOOKING_DRAFT_TTL_SECONDS}s",
        }
    }
