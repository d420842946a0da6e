"""
Session Repository Client.

Typed boundary to the remote sessions API. Owns no session state: every
mutation is a server round-trip and the returned Session is authoritative.

Failures surface to the caller, never retried here:
  - HTTP error status → RepositoryError(status_code)
  - transport failure (timeout, DNS, refused) → RepositoryNetworkError

Reads are served from a short-lived cache shared across requests (Redis, or
process memory without it), scoped per caller token; every write drops the
cached reads it could have changed.
"""

import hashlib
import json
import logging
import time
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx
import redis

from lessonhub.core.config import settings
from lessonhub.core.exceptions import RepositoryError, RepositoryNetworkError
from lessonhub.schemas.booking import WeeklyAvailability
from lessonhub.schemas.session import (
    BookingRequest,
    CompleteSessionData,
    MeetingRoom,
    MeetingToken,
    Session,
    SessionPage,
    SessionStatus,
    SlotCheck,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Read cache
# =============================================================================

class ReadCache:
    """
    Shared TTL cache of sessions API reads, keyed by (scope, operation, args).
    Stored in Redis with setex; falls back to an in-process dict when Redis is
    unreachable or disabled.

    Entries tagged "list" are dropped by any write; entries tagged with a
    session id are dropped by writes on that session. Tags span every scope.
    """

    KEY_PREFIX = "session_cache"

    def __init__(self, ttl_seconds: Optional[float] = None, client=None, use_redis: bool = True):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.SESSION_CACHE_TTL_SECONDS
        self._client = client
        self._use_redis = use_redis
        self._memory: Dict[str, Tuple[float, str, Any]] = {}

    def _name(self, key: Tuple) -> str:
        return ":".join([self.KEY_PREFIX] + [str(part) for part in key])

    def _tag_name(self, tag: str) -> str:
        return f"{self.KEY_PREFIX}:tag:{tag}"

    def _redis(self):
        if not self._use_redis:
            return None
        if self._client is None:
            try:
                client = redis.from_url(settings.REDIS_URL, decode_responses=True)
                client.ping()
                self._client = client
            except redis.RedisError as e:
                logger.warning(f"[SessionCache] Redis unavailable, caching in memory: {e}")
                return None
        return self._client

    def get(self, key: Tuple) -> Optional[Any]:
        name = self._name(key)
        client = self._redis()
        if client is not None:
            try:
                raw = client.get(name)
                if raw is not None:
                    return json.loads(raw)
            except redis.RedisError as e:
                logger.error(f"[SessionCache] Failed to read {name} from Redis: {e}")
            except json.JSONDecodeError as e:
                logger.error(f"[SessionCache] Dropping unreadable entry {name}: {e}")

        entry = self._memory.get(name)
        if entry is None:
            return None
        stored_at, _, value = entry
        if time.monotonic() - stored_at > self.ttl_seconds:
            del self._memory[name]
            return None
        return value

    def put(self, key: Tuple, tag: str, value: Any) -> None:
        if self.ttl_seconds <= 0:
            return
        name = self._name(key)
        client = self._redis()
        if client is not None:
            ttl = max(int(self.ttl_seconds), 1)
            tag_name = self._tag_name(tag)
            try:
                client.setex(name, ttl, json.dumps(value))
                client.sadd(tag_name, name)
                client.expire(tag_name, ttl)
                self._memory.pop(name, None)
                return
            except redis.RedisError as e:
                logger.error(f"[SessionCache] Failed to cache {name} in Redis: {e}")
        self._memory[name] = (time.monotonic(), tag, value)

    def drop_tag(self, tag: str) -> None:
        for name in [n for n, (_, t, _) in self._memory.items() if t == tag]:
            del self._memory[name]
        client = self._redis()
        if client is not None:
            tag_name = self._tag_name(tag)
            try:
                members = client.smembers(tag_name)
                client.delete(*members, tag_name)
            except redis.RedisError as e:
                logger.error(f"[SessionCache] Failed to drop {tag_name} from Redis: {e}")

    def __len__(self) -> int:
        return len(self._memory)


_LIST_TAG = "list"


def _session_tag(session_id: str) -> str:
    return f"session:{session_id}"


# =============================================================================
# Client
# =============================================================================

class SessionRepository:
    """
    Async client for the sessions API.

        async with SessionRepository(token=access_token) as repo:
            session = await repo.get(session_id)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        cache_ttl_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[ReadCache] = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        # Cached reads are only shared between holders of the same token.
        self._scope = hashlib.sha256(token.encode()).hexdigest()[:16] if token else "anonymous"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.SESSIONS_API_URL,
            headers=headers,
            timeout=timeout if timeout is not None else settings.SESSIONS_API_TIMEOUT_SECONDS,
            transport=transport,
        )
        self.cache = cache if cache is not None else ReadCache(cache_ttl_seconds, use_redis=False)

    async def __aenter__(self) -> "SessionRepository":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            message = _error_message(e.response) or f"Sessions API returned {status_code}"
            logger.warning(f"[SessionRepo] {method} {path} → {status_code}: {message}")
            raise RepositoryError(message, status_code=status_code, details={"path": path}) from e
        except httpx.TransportError as e:
            logger.error(f"[SessionRepo] {method} {path} failed: {e}")
            raise RepositoryNetworkError(
                "Could not reach the sessions service. Please try again.",
                details={"path": path, "error": str(e)},
            ) from e

        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    async def _cached(self, key: Tuple, tag: str, method: str, path: str, fresh: bool = False, **kwargs) -> Any:
        key = (self._scope,) + key
        if not fresh:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"[SessionRepo] cache hit {key[1:]}")
                return cached
        data = await self._request(method, path, **kwargs)
        self.cache.put(key, tag, data)
        return data

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def invalidate_lists(self) -> None:
        self.cache.drop_tag(_LIST_TAG)

    def invalidate_session(self, session_id: str) -> None:
        self.cache.drop_tag(_session_tag(session_id))
        self.invalidate_lists()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list(
        self,
        status_filter: Optional[SessionStatus] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> SessionPage:
        params: Dict[str, Any] = {"page": page, "limit": page_size}
        if status_filter:
            params["status"] = SessionStatus(status_filter).value
        key = ("list", params.get("status"), page, page_size)
        data = await self._cached(key, _LIST_TAG, "GET", "/sessions", params=params)

        total_pages = data.get("totalPages", data.get("total_pages", 1))
        current = data.get("page", page)
        return SessionPage(
            sessions=[Session.model_validate(s) for s in data.get("data", [])],
            total=data.get("total", 0),
            page=current,
            total_pages=total_pages,
            has_more=current < total_pages,
        )

    async def list_upcoming(self) -> SessionPage:
        data = await self._cached(("upcoming",), _LIST_TAG, "GET", "/sessions/upcoming")
        return _single_page(data)

    async def list_past(self, limit: int = 10) -> SessionPage:
        data = await self._cached(("past", limit), _LIST_TAG, "GET", "/sessions/past", params={"limit": limit})
        return _single_page(data)

    async def get(self, session_id: str, fresh: bool = False) -> Session:
        """Fetch one session. fresh=True skips the cached copy and refreshes it."""
        data = await self._cached(
            ("get", session_id), _session_tag(session_id), "GET", f"/sessions/{session_id}", fresh=fresh,
        )
        return Session.model_validate(data)

    async def check_slot(self, mentor_id: str, slot_date: str, start_time: str, duration: int) -> SlotCheck:
        # Revalidation right before submitting; never cached.
        data = await self._request(
            "GET",
            f"/mentors/{mentor_id}/check-slot",
            params={"date": slot_date, "start_time": start_time, "duration": duration},
        )
        return SlotCheck.model_validate(data)

    async def get_weekly_availability(self, mentor_id: str) -> WeeklyAvailability:
        data = await self._cached(("availability", mentor_id), _LIST_TAG, "GET", f"/mentors/{mentor_id}/availability")
        if isinstance(data, list):
            return WeeklyAvailability.from_rows(data, settings.DEFAULT_TIMEZONE)
        return WeeklyAvailability.from_rows(
            data.get("availability", []),
            data.get("timezone") or settings.DEFAULT_TIMEZONE,
        )

    async def list_mentor_bookings(self, mentor_id: str, start: date, end: date) -> List[Session]:
        params = {"start": start.isoformat(), "end": end.isoformat()}
        data = await self._cached(
            ("mentor_bookings", mentor_id, params["start"], params["end"]),
            _LIST_TAG,
            "GET",
            f"/mentors/{mentor_id}/sessions",
            params=params,
        )
        return [Session.model_validate(s) for s in data or []]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(
        self,
        mentor_id: str,
        scheduled_at: datetime,
        duration: int,
        timezone: str,
        notes: Optional[str] = None,
    ) -> Session:
        body = BookingRequest(
            mentor_id=mentor_id,
            scheduled_at=scheduled_at,
            duration=duration,
            timezone=timezone,
            lesson_plan=notes,
        )
        data = await self._request("POST", "/sessions", json=body.model_dump(mode="json", exclude_none=True))
        self.invalidate_lists()
        session = Session.model_validate(data)
        logger.info(f"[SessionRepo] Created session {session.id} with mentor {mentor_id}")
        return session

    async def cancel(self, session_id: str, reason: str) -> Session:
        try:
            data = await self._request("POST", f"/sessions/{session_id}/cancel", json={"reason": reason})
        finally:
            self.invalidate_session(session_id)
        logger.info(f"[SessionRepo] Cancelled session {session_id}")
        return Session.model_validate(data)

    async def reschedule(self, session_id: str, new_scheduled_at: datetime) -> Session:
        try:
            data = await self._request(
                "PATCH",
                f"/sessions/{session_id}/reschedule",
                json={"scheduled_at": new_scheduled_at.isoformat()},
            )
        finally:
            self.invalidate_session(session_id)
        return Session.model_validate(data)

    async def confirm(self, session_id: str) -> Session:
        try:
            data = await self._request("PATCH", f"/sessions/{session_id}/confirm")
        finally:
            self.invalidate_session(session_id)
        return Session.model_validate(data)

    async def reject(self, session_id: str, reason: str) -> Session:
        try:
            data = await self._request("PATCH", f"/sessions/{session_id}/reject", json={"reason": reason})
        finally:
            self.invalidate_session(session_id)
        return Session.model_validate(data)

    async def complete(self, session_id: str, outcome: Optional[CompleteSessionData] = None) -> None:
        body = (outcome or CompleteSessionData()).model_dump(exclude_none=True)
        try:
            await self._request("PATCH", f"/sessions/{session_id}/complete", json=body)
        finally:
            self.invalidate_session(session_id)
        logger.info(f"[SessionRepo] Completed session {session_id}")

    async def create_meeting_room(self, session_id: str) -> MeetingRoom:
        try:
            data = await self._request("POST", f"/sessions/{session_id}/create-meeting")
        finally:
            # The session's room reference changes.
            self.invalidate_session(session_id)
        return MeetingRoom.model_validate(data)

    async def get_meeting_token(self, session_id: str) -> MeetingToken:
        # Short-lived, per-user; never cached.
        data = await self._request("GET", f"/sessions/{session_id}/meeting-token")
        return MeetingToken.model_validate(data)

    async def delete_meeting_room(self, session_id: str) -> None:
        try:
            await self._request("DELETE", f"/sessions/{session_id}/delete-meeting")
        finally:
            self.invalidate_session(session_id)


def _single_page(data: Any) -> SessionPage:
    sessions = [Session.model_validate(s) for s in data or []]
    return SessionPage(sessions=sessions, total=len(sessions), page=1, total_pages=1, has_more=False)


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail") or body.get("error")
        if isinstance(message, list):
            return "; ".join(str(m) for m in message)
        return str(message) if message else None
    return None
