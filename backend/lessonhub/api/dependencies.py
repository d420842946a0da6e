from functools import lru_cache
from typing import AsyncIterator, Optional

from fastapi import Depends, Header

from lessonhub.services.booking.draft_store import DraftStorage
from lessonhub.services.sessions.repository import ReadCache, SessionRepository

@lru_cache()
def get_draft_storage() -> DraftStorage:
    """
    Get or create the draft storage.
    Cached so the in-memory fallback is shared by all requests of this process.
    """
    return DraftStorage()

@lru_cache()
def get_read_cache() -> ReadCache:
    """
    Get or create the sessions read cache, shared by every request of this process.
    """
    return ReadCache()

async def get_repository(
    authorization: Optional[str] = Header(None),
    cache: ReadCache = Depends(get_read_cache),
) -> AsyncIterator[SessionRepository]:
    """
    Sessions API client for one request, forwarding the caller's bearer token.
    """
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    async with SessionRepository(token=token, cache=cache) as repository:
        yield repository

def get_client_session_id(x_client_session: str = Header(..., alias="X-Client-Session")) -> str:
    """
    Identifier of the browser tab session that owns the booking draft.
    """
    return x_client_session
