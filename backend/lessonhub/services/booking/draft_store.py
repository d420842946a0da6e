"""
Booking Draft Store.

Holds one mentee's reservation-in-progress across the 3-step booking flow:
  1 select slot → 2 details → 3 confirmation

The draft is keyed by the client's tab session (X-Client-Session), never by
user, so two tabs never share or overwrite each other's draft.
Persistence: Redis with a TTL, in-memory fallback when Redis is unreachable.
"""

import json
import logging
from typing import Dict, Optional

import redis

from lessonhub.core.config import settings
from lessonhub.core.exceptions import DraftValidationError
from lessonhub.schemas.booking import ALLOWED_DURATIONS, BookingDraft, BookingSlot
from lessonhub.schemas.session import BookingRequest, Session

logger = logging.getLogger(__name__)

FIRST_STEP = 1
LAST_STEP = 3


# =============================================================================
# Storage
# =============================================================================

class DraftStorage:
    """
    Draft persistence. Uses the given Redis client, or connects to
    settings.REDIS_URL lazily; any Redis failure falls back to the in-process dict.
    """

    KEY_PREFIX = "booking_draft"

    def __init__(self, client=None, ttl_seconds: Optional[int] = None, use_redis: bool = True):
        self._client = client
        self._use_redis = use_redis
        self._memory: Dict[str, dict] = {}
        self.ttl_seconds = ttl_seconds or settings.BOOKING_DRAFT_TTL_SECONDS

    def _key(self, client_session_id: str) -> str:
        return f"{self.KEY_PREFIX}:{client_session_id}"

    def _redis(self):
        if not self._use_redis:
            return None
        if self._client is None:
            try:
                client = redis.from_url(settings.REDIS_URL, decode_responses=True)
                client.ping()
                self._client = client
            except redis.RedisError as e:
                logger.warning(f"[BookingDraft] Redis unavailable, using in-memory drafts: {e}")
                return None
        return self._client

    def load(self, client_session_id: str) -> Optional[BookingDraft]:
        client = self._redis()
        raw = None
        if client is not None:
            try:
                raw = client.get(self._key(client_session_id))
            except redis.RedisError as e:
                logger.error(f"[BookingDraft] Failed to read draft from Redis: {e}")
                raw = None
            if raw is None:
                data = self._memory.get(client_session_id)
            else:
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError as e:
                    logger.error(f"[BookingDraft] Failed to deserialise draft {client_session_id}: {e}")
                    return None
        else:
            data = self._memory.get(client_session_id)

        if not data:
            return None
        return BookingDraft.from_dict(data)

    def save(self, draft: BookingDraft) -> None:
        client = self._redis()
        payload = draft.to_dict()
        if client is not None:
            try:
                client.setex(self._key(draft.client_session_id), self.ttl_seconds, json.dumps(payload))
                self._memory.pop(draft.client_session_id, None)
                return
            except redis.RedisError as e:
                logger.error(f"[BookingDraft] Failed to save draft to Redis: {e}")
        self._memory[draft.client_session_id] = payload

    def delete(self, client_session_id: str) -> None:
        self._memory.pop(client_session_id, None)
        client = self._redis()
        if client is not None:
            try:
                client.delete(self._key(client_session_id))
            except redis.RedisError as e:
                logger.error(f"[BookingDraft] Failed to delete draft from Redis: {e}")


# =============================================================================
# Store
# =============================================================================

class BookingDraftStore:
    """
    Single-writer container around one BookingDraft.
    Every action persists the draft; nothing else mutates it.
    """

    def __init__(self, client_session_id: str, storage: DraftStorage, timezone: Optional[str] = None):
        if not client_session_id:
            raise DraftValidationError("A client session id is required to hold a booking draft")
        self.storage = storage
        self._submitting = False
        self.draft = storage.load(client_session_id) or BookingDraft(
            client_session_id=client_session_id,
            timezone=timezone or settings.DEFAULT_TIMEZONE,
        )

    @property
    def client_session_id(self) -> str:
        return self.draft.client_session_id

    def _persist(self) -> None:
        self.storage.save(self.draft)

    def _clear_slot(self) -> None:
        self.draft.selected_slot = None
        self.draft.current_step = FIRST_STEP

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def set_mentor(self, mentor_id: str, mentor_summary: Optional[dict] = None) -> BookingDraft:
        if not mentor_id:
            raise DraftValidationError("Mentor id must not be empty")
        if self.draft.mentor_id and self.draft.mentor_id != mentor_id:
            # Slots belong to one mentor's calendar.
            self.draft.selected_date = None
            self._clear_slot()
        self.draft.mentor_id = mentor_id
        self.draft.mentor_summary = mentor_summary or {}
        self._persist()
        logger.info(f"[BookingDraft] {self.client_session_id}: mentor set to {mentor_id}")
        return self.draft

    def set_selected_date(self, selected_date: Optional[str]) -> BookingDraft:
        self.draft.selected_date = selected_date
        self._clear_slot()
        self._persist()
        return self.draft

    def set_slot(self, slot: Optional[BookingSlot]) -> BookingDraft:
        if slot is not None and self.draft.mentor_id and slot.mentor_id and slot.mentor_id != self.draft.mentor_id:
            raise DraftValidationError(
                "Selected slot belongs to a different mentor",
                details={"mentor_id": self.draft.mentor_id, "slot_mentor_id": slot.mentor_id},
            )
        if slot is not None and self.draft.duration:
            slot_minutes = int((slot.end_at - slot.start_at).total_seconds() // 60)
            if slot_minutes != self.draft.duration:
                raise DraftValidationError(
                    f"Selected slot is {slot_minutes} minutes but the lesson is {self.draft.duration} minutes",
                    details={"duration": self.draft.duration, "slot_minutes": slot_minutes},
                )
        self.draft.selected_slot = slot
        if slot is None:
            self.draft.current_step = FIRST_STEP
        else:
            self.draft.selected_date = slot.date
        self._persist()
        return self.draft

    def set_duration(self, duration: Optional[int]) -> BookingDraft:
        if duration is not None and duration not in ALLOWED_DURATIONS:
            raise DraftValidationError(
                f"Duration must be one of {', '.join(str(d) for d in ALLOWED_DURATIONS)} minutes",
                details={"duration": duration},
            )
        self.draft.duration = duration
        # Available slots depend on the duration.
        self._clear_slot()
        self._persist()
        logger.info(f"[BookingDraft] {self.client_session_id}: duration set to {duration}, slot cleared")
        return self.draft

    def set_notes(self, notes: str) -> BookingDraft:
        self.draft.lesson_notes = notes or ""
        self._persist()
        return self.draft

    def set_timezone(self, timezone: str) -> BookingDraft:
        if timezone != self.draft.timezone:
            # Slot labels are expressed in the display timezone.
            self.draft.timezone = timezone
            self._clear_slot()
            self._persist()
        return self.draft

    # ------------------------------------------------------------------
    # Step navigation
    # ------------------------------------------------------------------

    def can_proceed_to_step2(self) -> bool:
        return bool(self.draft.mentor_id and self.draft.selected_slot and self.draft.duration)

    def can_proceed_to_step3(self) -> bool:
        # Lesson notes are optional.
        return self.can_proceed_to_step2()

    def _can_reach(self, step: int) -> bool:
        if step >= 3:
            return self.can_proceed_to_step3()
        if step == 2:
            return self.can_proceed_to_step2()
        return True

    def go_to_step(self, step: int) -> BookingDraft:
        target = max(FIRST_STEP, min(step, LAST_STEP))
        if not self._can_reach(target):
            raise DraftValidationError(
                "Select a mentor, a time slot and a duration before continuing",
                details={"requested_step": target, "current_step": self.draft.current_step},
            )
        self.draft.current_step = target
        self._persist()
        return self.draft

    def advance_step(self) -> BookingDraft:
        return self.go_to_step(self.draft.current_step + 1)

    def retreat_step(self) -> BookingDraft:
        return self.go_to_step(self.draft.current_step - 1)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def reset(self) -> BookingDraft:
        self.storage.delete(self.client_session_id)
        self.draft = BookingDraft(client_session_id=self.client_session_id, timezone=self.draft.timezone)
        logger.info(f"[BookingDraft] {self.client_session_id}: draft reset")
        return self.draft

    def build_request(self) -> BookingRequest:
        if not self.can_proceed_to_step3():
            missing = [
                name for name, value in (
                    ("mentor", self.draft.mentor_id),
                    ("slot", self.draft.selected_slot),
                    ("duration", self.draft.duration),
                ) if not value
            ]
            raise DraftValidationError(
                f"Booking draft is incomplete: missing {', '.join(missing)}",
                details={"missing": missing},
            )
        return BookingRequest(
            mentor_id=self.draft.mentor_id,
            scheduled_at=self.draft.selected_slot.start_at,
            duration=self.draft.duration,
            timezone=self.draft.timezone,
            lesson_plan=self.draft.lesson_notes or None,
        )

    async def submit(self, repository, revalidate: bool = False) -> Session:
        """
        Create the session from the draft. On success the draft is discarded
        unconditionally; on failure it is kept so the user can retry.

        With `revalidate`, the slot is checked against the mentor's calendar
        first; a slot taken in the meantime is cleared from the draft.
        """
        if self._submitting:
            raise DraftValidationError("A booking submission is already in progress")
        request = self.build_request()

        self._submitting = True
        try:
            if revalidate:
                slot = self.draft.selected_slot
                check = await repository.check_slot(request.mentor_id, slot.date, slot.start_time, request.duration)
                if not check.available:
                    self.set_slot(None)
                    raise DraftValidationError(
                        check.reason or "This time slot is no longer available. Please pick another one.",
                        details={"date": slot.date, "start_time": slot.start_time},
                    )
            session = await repository.create(
                request.mentor_id,
                request.scheduled_at,
                request.duration,
                request.timezone,
                request.lesson_plan,
            )
        finally:
            self._submitting = False

        self.reset()
        logger.info(f"[BookingDraft] {self.client_session_id}: submitted as session {session.id}")
        return session
