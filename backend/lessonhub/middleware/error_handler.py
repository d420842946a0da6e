from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from lessonhub.core.exceptions import (
    CallStateError,
    DraftValidationError,
    FinalizationError,
    LessonHubException,
    RepositoryError,
    RepositoryNetworkError,
)
from lessonhub.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)

async def global_exception_handler(request: Request, exc: Exception):
    """
    Handle unhandled exceptions.
    """
    logger.error(f"Global exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal Server Error",
            message="An unexpected error occurred. Please try again later."
        ).model_dump()
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handle HTTP exceptions.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=str(exc.detail),
            message="HTTP Error"
        ).model_dump()
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle validation errors.
    """
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="Validation Error",
            message="Invalid request parameters",
            details=exc.errors()
        ).model_dump()
    )

def _status_for(exc: LessonHubException) -> int:
    if isinstance(exc, (DraftValidationError, FinalizationError)):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(exc, CallStateError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, RepositoryNetworkError):
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(exc, RepositoryError):
        # Upstream 4xx pass through; upstream 5xx become a gateway error.
        if exc.status_code and 400 <= exc.status_code < 500:
            return exc.status_code
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR

async def lessonhub_exception_handler(request: Request, exc: LessonHubException):
    """
    Handle domain errors raised by the booking, session and call services.
    """
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            message=exc.message,
            details=exc.details or None
        ).model_dump()
    )

def setup_error_handlers(app):
    """
    Register exception handlers.
    """
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(LessonHubException, lessonhub_exception_handler)
