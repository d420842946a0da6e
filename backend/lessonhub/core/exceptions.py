"""
Custom exceptions for the application.
Provides specific error types for the booking, session and call components.
"""

from typing import Optional


class LessonHubException(Exception):
    """Base exception for session-core errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class DraftValidationError(LessonHubException):
    """Raised when a booking draft is incomplete or holds an invalid value. Never reaches the network."""
    pass


class RepositoryError(LessonHubException):
    """Raised when the sessions API answers a request with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict] = None):
        super().__init__(message, details)
        self.status_code = status_code


class RepositoryNetworkError(RepositoryError):
    """Raised when the sessions API could not be reached at all (timeout, DNS, refused)."""
    pass


class CallStateError(LessonHubException):
    """Raised when a call action is requested in a state that does not allow it."""
    pass


class FinalizationError(LessonHubException):
    """Raised when a session outcome payload is rejected before submission."""
    pass


class ConfigurationError(LessonHubException):
    """Raised when configuration is invalid or missing."""
    pass
