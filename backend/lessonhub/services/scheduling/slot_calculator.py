"""
Slot calculation.

Turns a mentor's recurring weekly availability into concrete bookable slots.

For every calendar day in range the weekday bucket's intervals are taken in the
mentor's timezone, a duration-sized window slides across each one in fixed
steps, and a window survives only if it:
    - fits entirely inside the interval (a trailing partial window is dropped)
    - has not started yet
    - does not overlap a blocking booking: start < other_end AND end > other_start
Surviving windows are reported in the mentee's display timezone.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from lessonhub.core.config import settings
from lessonhub.schemas.booking import BookingSlot, DayAvailability, WeeklyAvailability, day_of_week
from lessonhub.schemas.session import BLOCKING_STATUSES, Session

logger = logging.getLogger(__name__)

Interval = Tuple[datetime, datetime]


def _instant(day: date, at: time, tz: ZoneInfo, latest: bool) -> datetime:
    """
    Resolve a wall-clock time on `day` to a UTC instant.

    A time skipped or repeated by a DST transition has two readings; take the
    latest one for an interval start and the earliest one for an interval end
    so the resolved interval never exceeds what the mentor declared.
    """
    readings = [
        datetime.combine(day, at, tzinfo=tz).replace(fold=fold).astimezone(timezone.utc)
        for fold in (0, 1)
    ]
    return max(readings) if latest else min(readings)


def _overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def _busy_intervals(existing: Iterable[Union[Session, Interval]]) -> List[Interval]:
    busy: List[Interval] = []
    for item in existing:
        if isinstance(item, Session):
            if item.status not in BLOCKING_STATUSES:
                continue
            busy.append((item.scheduled_at, item.ends_at))
        else:
            start, end = item
            busy.append((start.astimezone(timezone.utc), end.astimezone(timezone.utc)))
    return busy


def _daterange(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def compute_slots(
    availability: WeeklyAvailability,
    start_date: date,
    end_date: date,
    existing: Iterable[Union[Session, Interval]],
    duration_minutes: int,
    display_timezone: str,
    now: Optional[datetime] = None,
    mentor_id: str = "",
    granularity_minutes: Optional[int] = None,
) -> List[BookingSlot]:
    """
    Return every bookable slot whose mentor-local day falls in [start_date, end_date],
    ordered by start instant.

    A mentor interval shorter than the duration yields no slots; it is not an error.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    if end_date < start_date:
        return []

    step = timedelta(minutes=granularity_minutes or settings.SLOT_GRANULARITY_MINUTES)
    duration = timedelta(minutes=duration_minutes)
    mentor_tz = ZoneInfo(availability.timezone)
    display_tz = ZoneInfo(display_timezone)
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    busy = _busy_intervals(existing)

    seen = set()
    slots: List[BookingSlot] = []
    for day in _daterange(start_date, end_date):
        for interval in availability.intervals_for(day_of_week(day)):
            window_start = _instant(day, interval.start, mentor_tz, latest=True)
            window_end = _instant(day, interval.end, mentor_tz, latest=False)
            if window_end - window_start < duration:
                logger.debug(
                    f"[SlotCalculator] {day} {interval.start}-{interval.end} shorter than {duration_minutes} min"
                )
                continue

            cursor = window_start
            while cursor + duration <= window_end:
                slot_end = cursor + duration
                if cursor >= now and cursor not in seen and not any(
                    _overlaps(cursor, slot_end, b_start, b_end) for b_start, b_end in busy
                ):
                    local_start = cursor.astimezone(display_tz)
                    local_end = slot_end.astimezone(display_tz)
                    slots.append(BookingSlot(
                        date=local_start.date().isoformat(),
                        start_time=local_start.strftime("%H:%M"),
                        end_time=local_end.strftime("%H:%M"),
                        start_at=cursor,
                        end_at=slot_end,
                        mentor_id=mentor_id,
                    ))
                    seen.add(cursor)
                cursor += step

    slots.sort(key=lambda s: s.start_at)
    return slots


def group_by_day(slots: Iterable[BookingSlot]) -> Dict[str, List[BookingSlot]]:
    grouped: Dict[str, List[BookingSlot]] = {}
    for slot in slots:
        grouped.setdefault(slot.date, []).append(slot)
    return grouped


def available_days(
    availability: WeeklyAvailability,
    start_date: date,
    days: int,
    existing: Iterable[Union[Session, Interval]],
    duration_minutes: int,
    display_timezone: str,
    now: Optional[datetime] = None,
    mentor_id: str = "",
) -> List[DayAvailability]:
    """
    Slots for `days` consecutive mentee-local dates starting at `start_date`,
    one DayAvailability per date (empty days included).
    """
    # Mentor-local days one either side cover any timezone offset between the two parties.
    slots = compute_slots(
        availability,
        start_date - timedelta(days=1),
        start_date + timedelta(days=days),
        existing,
        duration_minutes,
        display_timezone,
        now=now,
        mentor_id=mentor_id,
    )
    grouped = group_by_day(slots)
    result = []
    for offset in range(days):
        iso = (start_date + timedelta(days=offset)).isoformat()
        result.append(DayAvailability(date=iso, slots=grouped.get(iso, [])))
    return result


def slots_for_day(
    availability: WeeklyAvailability,
    day: date,
    existing: Iterable[Union[Session, Interval]],
    duration_minutes: int,
    display_timezone: str,
    now: Optional[datetime] = None,
    mentor_id: str = "",
) -> List[BookingSlot]:
    """Slots on a single mentee-local date."""
    return available_days(
        availability, day, 1, existing, duration_minutes, display_timezone, now=now, mentor_id=mentor_id
    )[0].slots
