"""
Session schemas: the durable reservation as exchanged with the sessions API.

Field names follow the Python side; aliases match the backend's wire names
so payloads can be validated directly from JSON responses.
"""
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, validator


class SessionStatus(str, Enum):
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED_BY_MENTOR = "CANCELLED_BY_MENTOR"
    CANCELLED_BY_MENTEE = "CANCELLED_BY_MENTEE"
    NO_SHOW_MENTOR = "NO_SHOW_MENTOR"
    NO_SHOW_MENTEE = "NO_SHOW_MENTEE"

    @property
    def is_terminal(self) -> bool:
        return not SESSION_TRANSITIONS[self]

    def can_transition_to(self, target: "SessionStatus") -> bool:
        return target in SESSION_TRANSITIONS[self]


_SIDE_BRANCHES = frozenset({
    SessionStatus.CANCELLED_BY_MENTOR,
    SessionStatus.CANCELLED_BY_MENTEE,
    SessionStatus.NO_SHOW_MENTOR,
    SessionStatus.NO_SHOW_MENTEE,
})

# Asserted server-side; mirrored here so the client can tell terminal states apart.
SESSION_TRANSITIONS = {
    SessionStatus.PENDING_CONFIRMATION: frozenset({SessionStatus.CONFIRMED}) | _SIDE_BRANCHES,
    SessionStatus.CONFIRMED: frozenset({SessionStatus.IN_PROGRESS}) | _SIDE_BRANCHES,
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.COMPLETED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED_BY_MENTOR: frozenset(),
    SessionStatus.CANCELLED_BY_MENTEE: frozenset(),
    SessionStatus.NO_SHOW_MENTOR: frozenset(),
    SessionStatus.NO_SHOW_MENTEE: frozenset(),
}

JOINABLE_STATUSES = frozenset({SessionStatus.CONFIRMED, SessionStatus.IN_PROGRESS})

# Statuses whose time interval is unavailable to new bookings.
BLOCKING_STATUSES = frozenset({
    SessionStatus.PENDING_CONFIRMATION,
    SessionStatus.CONFIRMED,
    SessionStatus.IN_PROGRESS,
})


class CancellationActor(str, Enum):
    MENTOR = "mentor"
    MENTEE = "mentee"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Session(BaseModel):
    """A booked lesson between one mentor and one mentee."""
    id: str
    mentor_id: str = Field(..., alias="mentor_profile_id")
    mentee_id: str = Field(..., alias="mentee_profile_id")
    scheduled_at: datetime = Field(..., description="Start instant, UTC")
    duration_minutes: int = Field(..., alias="duration", gt=0)
    status: SessionStatus
    timezone: Optional[str] = None
    meeting_room_reference: Optional[str] = Field(None, alias="meeting_url")
    lesson_notes: Optional[str] = Field(None, alias="lesson_plan")

    # Completion
    notes: Optional[str] = Field(None, alias="mentor_notes")
    topics_covered: List[str] = Field(default_factory=list)
    mastery_level: Optional[int] = Field(None, ge=0, le=100)
    completed_at: Optional[datetime] = None

    # Confirmation / cancellation
    mentor_confirmed: bool = False
    confirmed_at: Optional[datetime] = None
    cancelled_by: Optional[CancellationActor] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    price: Optional[float] = None
    currency: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True

    @validator("scheduled_at", "completed_at", "confirmed_at", "cancelled_at", "created_at", "updated_at")
    def normalize_utc(cls, v):
        return _as_utc(v)

    @validator("topics_covered", pre=True)
    def none_as_empty(cls, v):
        return v or []

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)


class SessionPage(BaseModel):
    """One page of a session listing."""
    sessions: List[Session] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 1
    has_more: bool = False


class BookingRequest(BaseModel):
    """Body of a session creation request."""
    mentor_id: str
    scheduled_at: datetime
    duration: int
    timezone: str
    lesson_plan: Optional[str] = None


class CompleteSessionData(BaseModel):
    """Mentor-supplied outcome attached when a session is completed."""
    notes: Optional[str] = None
    topics_covered: Optional[List[str]] = None
    mastery_level: Optional[int] = Field(None, ge=0, le=100)


class MeetingRoom(BaseModel):
    meeting_url: str
    room_name: Optional[str] = None
    expires_at: Optional[datetime] = None


class MeetingToken(BaseModel):
    token: str
    expires_at: datetime


class SlotCheck(BaseModel):
    available: bool
    reason: Optional[str] = None
