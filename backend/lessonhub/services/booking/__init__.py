"""Booking draft services."""

from lessonhub.services.booking.draft_store import BookingDraftStore, DraftStorage
from lessonhub.services.booking.pricing import calculate_price, duration_options

__all__ = [
    "BookingDraftStore",
    "DraftStorage",
    "calculate_price",
    "duration_options",
]
