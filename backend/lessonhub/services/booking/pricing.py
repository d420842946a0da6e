"""Lesson pricing from a mentor's hourly rate."""

from typing import List

from lessonhub.schemas.booking import ALLOWED_DURATIONS, DEFAULT_DURATION


def calculate_price(hourly_rate: float, duration: int) -> float:
    return round(hourly_rate / 60 * duration, 2)


def duration_options(hourly_rate: float, currency: str = "EUR") -> List[dict]:
    """One entry per bookable duration, with its price; the default length is flagged recommended."""
    return [
        {
            "value": duration,
            "label": "1 hour" if duration == 60 else f"{duration} min",
            "price": calculate_price(hourly_rate, duration),
            "currency": currency,
            "recommended": duration == DEFAULT_DURATION,
        }
        for duration in ALLOWED_DURATIONS
    ]
