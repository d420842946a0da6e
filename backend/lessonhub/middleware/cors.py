from lessonhub.core.config import settings

def get_cors_config() -> dict:
    """
    Get CORS configuration parameters.
    Returns a dictionary suitable for CORSMiddleware.
    The client tab session header must be allowed for the booking draft endpoints.
    """
    return {
        "allow_origins": settings.cors_origins_list,
        "allow_credentials": True,
        "allow_methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        "allow_headers": ["Authorization", "Content-Type", "X-Client-Session"],
    }
