"""
Booking schemas: recurring availability, derived slots and the draft data models.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Dict, List, Optional

# Allowed lesson lengths, in minutes.
ALLOWED_DURATIONS = (30, 45, 60, 90, 120)
DEFAULT_DURATION = 60

# Day-of-week numbering used by mentor profiles: 0 = Sunday ... 6 = Saturday.
SUNDAY, MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY = range(7)


def parse_hhmm(value: str) -> time:
    """Parse 'HH:MM' (seconds tolerated) into a time. Raises ValueError for invalid formats."""
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time format: {value!r}")
    h = int(parts[0])
    m = int(parts[1])
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Invalid time value: {value!r}")
    return time(h, m)


def day_of_week(d: date) -> int:
    """Map a calendar date to its Sunday-based weekday bucket."""
    return (d.weekday() + 1) % 7


@dataclass(frozen=True)
class TimeInterval:
    """A time-of-day range inside one weekday, start < end."""
    start: time
    end: time

    def __post_init__(self):
        if not self.start < self.end:
            raise ValueError(f"Interval start {self.start} must be before end {self.end}")

    def overlaps(self, other: "TimeInterval") -> bool:
        return self.start < other.end and self.end > other.start


@dataclass
class WeeklyAvailability:
    """
    A mentor's recurring weekly availability, expressed in the mentor's timezone.
    Intervals within a day are kept sorted and must not overlap.
    """
    timezone: str
    days: Dict[int, List[TimeInterval]] = field(default_factory=dict)

    def __post_init__(self):
        normalized: Dict[int, List[TimeInterval]] = {}
        for day, intervals in self.days.items():
            if day not in range(7):
                raise ValueError(f"Invalid day of week: {day}")
            ordered = sorted(intervals, key=lambda i: i.start)
            for previous, current in zip(ordered, ordered[1:]):
                if previous.overlaps(current):
                    raise ValueError(f"Overlapping intervals on day {day}: {previous} / {current}")
            normalized[day] = ordered
        self.days = normalized

    def intervals_for(self, day: int) -> List[TimeInterval]:
        return self.days.get(day, [])

    @classmethod
    def from_rows(cls, rows: List[dict], timezone: str) -> "WeeklyAvailability":
        """
        Build from the profile's availability rows:
        {"day_of_week": 1, "start_time": "10:00", "end_time": "12:00", "is_available": true}
        Rows flagged unavailable are skipped.
        """
        days: Dict[int, List[TimeInterval]] = {}
        for row in rows:
            if not row.get("is_available", True):
                continue
            interval = TimeInterval(parse_hhmm(row["start_time"]), parse_hhmm(row["end_time"]))
            days.setdefault(int(row["day_of_week"]), []).append(interval)
        return cls(timezone=timezone, days=days)


@dataclass(frozen=True)
class BookingSlot:
    """A concrete bookable interval. Date and times are in the mentee's display timezone."""
    date: str           # ISO date, e.g. "2025-03-10"
    start_time: str     # "HH:MM"
    end_time: str       # "HH:MM"
    start_at: datetime  # aware, UTC
    end_at: datetime    # aware, UTC
    mentor_id: str = ""

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "start_at": self.start_at.isoformat(),
            "end_at": self.end_at.isoformat(),
            "mentor_id": self.mentor_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BookingSlot":
        return cls(
            date=data["date"],
            start_time=data["start_time"],
            end_time=data["end_time"],
            start_at=datetime.fromisoformat(data["start_at"]),
            end_at=datetime.fromisoformat(data["end_at"]),
            mentor_id=data.get("mentor_id", ""),
        )


@dataclass
class DayAvailability:
    """Slots grouped under one mentee-local date."""
    date: str
    slots: List[BookingSlot] = field(default_factory=list)

    @property
    def has_availability(self) -> bool:
        return bool(self.slots)

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "slots": [s.to_dict() for s in self.slots],
            "has_availability": self.has_availability,
        }


@dataclass
class BookingDraft:
    """
    A mentee's reservation under construction.
    Stored keyed by the client's tab session, never by user.
    """
    client_session_id: str
    mentor_id: Optional[str] = None
    mentor_summary: dict = field(default_factory=dict)
    selected_date: Optional[str] = None
    selected_slot: Optional[BookingSlot] = None
    duration: Optional[int] = DEFAULT_DURATION
    lesson_notes: str = ""
    timezone: str = "UTC"
    current_step: int = 1

    def to_dict(self) -> dict:
        return {
            "client_session_id": self.client_session_id,
            "mentor_id": self.mentor_id,
            "mentor_summary": self.mentor_summary,
            "selected_date": self.selected_date,
            "selected_slot": self.selected_slot.to_dict() if self.selected_slot else None,
            "duration": self.duration,
            "lesson_notes": self.lesson_notes,
            "timezone": self.timezone,
            "current_step": self.current_step,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BookingDraft":
        draft = cls(client_session_id=data["client_session_id"])
        draft.mentor_id = data.get("mentor_id")
        draft.mentor_summary = data.get("mentor_summary") or {}
        draft.selected_date = data.get("selected_date")
        slot = data.get("selected_slot")
        draft.selected_slot = BookingSlot.from_dict(slot) if slot else None
        draft.duration = data.get("duration")
        draft.lesson_notes = data.get("lesson_notes", "")
        draft.timezone = data.get("timezone", "UTC")
        draft.current_step = int(data.get("current_step", 1))
        return draft
