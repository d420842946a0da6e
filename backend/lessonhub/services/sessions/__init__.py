"""Remote sessions API client."""

from lessonhub.services.sessions.repository import ReadCache, SessionRepository

__all__ = ["ReadCache", "SessionRepository"]
