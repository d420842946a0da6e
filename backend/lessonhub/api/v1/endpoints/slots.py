"""
Available slots endpoint.
GET /api/v1/mentors/{mentor_id}/available-slots
"""
import logging
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, Query

from lessonhub.api.dependencies import get_repository
from lessonhub.core.config import settings
from lessonhub.schemas.booking import ALLOWED_DURATIONS, DEFAULT_DURATION
from lessonhub.services.scheduling.slot_calculator import available_days
from lessonhub.services.sessions.repository import SessionRepository

logger = logging.getLogger(__name__)

router = APIRouter()


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {name}")


@router.get("/mentors/{mentor_id}/available-slots")
async def get_available_slots(
    mentor_id: str,
    start: Optional[date] = Query(None, description="First mentee-local date, defaults to today"),
    days: int = Query(7, ge=1, le=31),
    duration: int = Query(DEFAULT_DURATION),
    timezone: Optional[str] = Query(None, description="Mentee display timezone"),
    repository: SessionRepository = Depends(get_repository),
):
    """
    Bookable slots for a mentor, grouped by mentee-local date.

    - Weekly availability and existing bookings come from the sessions API
    - Slots overlapping a pending, confirmed or in-progress session are excluded
    - Past slots and trailing partial windows are never offered
    """
    if duration not in ALLOWED_DURATIONS:
        raise HTTPException(
            status_code=422,
            detail=f"Duration must be one of {', '.join(str(d) for d in ALLOWED_DURATIONS)}",
        )
    display_timezone = timezone or settings.DEFAULT_TIMEZONE
    zone = _zone(display_timezone)
    start = start or datetime.now(zone).date()

    availability = await repository.get_weekly_availability(mentor_id)
    bookings = await repository.list_mentor_bookings(
        mentor_id,
        start - timedelta(days=1),
        start + timedelta(days=days + 1),
    )

    result = available_days(
        availability,
        start,
        days,
        bookings,
        duration,
        display_timezone,
        mentor_id=mentor_id,
    )
    logger.info(
        f"[Slots] mentor={mentor_id} start={start} days={days} duration={duration} "
        f"slots={sum(len(d.slots) for d in result)}"
    )
    return [d.to_dict() for d in result]
