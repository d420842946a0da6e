"""
Booking draft endpoints, scoped to one client tab session (X-Client-Session header).

GET    /api/v1/booking/draft
PUT    /api/v1/booking/draft/{mentor|date|slot|duration|notes|timezone}
POST   /api/v1/booking/draft/{next|back}
DELETE /api/v1/booking/draft
POST   /api/v1/booking/draft/submit
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from lessonhub.api.dependencies import get_client_session_id, get_draft_storage, get_repository
from lessonhub.core.config import settings
from lessonhub.middleware.rate_limit import limiter
from lessonhub.schemas.booking import BookingSlot
from lessonhub.services.booking.draft_store import BookingDraftStore, DraftStorage
from lessonhub.services.sessions.repository import SessionRepository

logger = logging.getLogger(__name__)

router = APIRouter()


class MentorSelection(BaseModel):
    mentor_id: str = Field(..., min_length=1)
    mentor_summary: dict = Field(default_factory=dict)


class DateSelection(BaseModel):
    date: Optional[str] = None


class SlotSelection(BaseModel):
    date: str
    start_time: str
    end_time: str
    start_at: datetime
    end_at: datetime
    mentor_id: str = ""


class SlotUpdate(BaseModel):
    slot: Optional[SlotSelection] = None


class DurationUpdate(BaseModel):
    duration: Optional[int] = None


class NotesUpdate(BaseModel):
    notes: str = Field(default="", max_length=2000)


class TimezoneUpdate(BaseModel):
    timezone: str


def _store(
    client_session_id: str = Depends(get_client_session_id),
    storage: DraftStorage = Depends(get_draft_storage),
) -> BookingDraftStore:
    return BookingDraftStore(client_session_id, storage)


def _view(store: BookingDraftStore) -> dict:
    return {
        "draft": store.draft.to_dict(),
        "can_proceed_to_step2": store.can_proceed_to_step2(),
        "can_proceed_to_step3": store.can_proceed_to_step3(),
    }


@router.get("/draft")
async def get_draft(store: BookingDraftStore = Depends(_store)):
    return _view(store)


@router.put("/draft/mentor")
async def set_mentor(body: MentorSelection, store: BookingDraftStore = Depends(_store)):
    store.set_mentor(body.mentor_id, body.mentor_summary)
    return _view(store)


@router.put("/draft/date")
async def set_date(body: DateSelection, store: BookingDraftStore = Depends(_store)):
    store.set_selected_date(body.date)
    return _view(store)


@router.put("/draft/slot")
async def set_slot(body: SlotUpdate, store: BookingDraftStore = Depends(_store)):
    slot = BookingSlot(**body.slot.model_dump()) if body.slot else None
    store.set_slot(slot)
    return _view(store)


@router.put("/draft/duration")
async def set_duration(body: DurationUpdate, store: BookingDraftStore = Depends(_store)):
    store.set_duration(body.duration)
    return _view(store)


@router.put("/draft/notes")
async def set_notes(body: NotesUpdate, store: BookingDraftStore = Depends(_store)):
    store.set_notes(body.notes)
    return _view(store)


@router.put("/draft/timezone")
async def set_timezone(body: TimezoneUpdate, store: BookingDraftStore = Depends(_store)):
    store.set_timezone(body.timezone)
    return _view(store)


@router.post("/draft/next")
async def next_step(store: BookingDraftStore = Depends(_store)):
    store.advance_step()
    return _view(store)


@router.post("/draft/back")
async def previous_step(store: BookingDraftStore = Depends(_store)):
    store.retreat_step()
    return _view(store)


@router.delete("/draft")
async def reset_draft(store: BookingDraftStore = Depends(_store)):
    store.reset()
    return _view(store)


@router.post("/draft/submit", status_code=201)
@limiter.limit(settings.RATE_LIMIT_BOOKING)
async def submit_draft(
    request: Request,
    store: BookingDraftStore = Depends(_store),
    repository: SessionRepository = Depends(get_repository),
):
    """
    Turn the draft into a pending session.

    - Incomplete drafts are rejected locally (422), nothing is sent upstream
    - The slot is revalidated against the mentor's calendar before creation
    - The draft is discarded once the session exists

    NOTE: slowapi requires the Starlette Request param to be literally named 'request'.
    """
    session = await store.submit(repository, revalidate=True)
    logger.info(f"[Booking] client={store.client_session_id} created session {session.id}")
    return session.model_dump(mode="json")
