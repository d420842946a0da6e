from fastapi import APIRouter
from lessonhub.api.v1.endpoints import booking, health, meetings, slots

router = APIRouter()

# Slot discovery & booking flow
router.include_router(slots.router, tags=["Slots"])
router.include_router(booking.router, prefix="/booking", tags=["Booking"])

# Live room
router.include_router(meetings.router, prefix="/sessions", tags=["Meetings"])

router.include_router(health.router, tags=["Health"])
