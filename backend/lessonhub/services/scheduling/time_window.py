"""
Join-window gate for the live room.

A session's room may be entered from 15 minutes before its start until
30 minutes after its scheduled end, and only while the session is confirmed
or in progress. The decision depends on "now", so callers evaluate it on
every entry to the meeting page and never cache it.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from lessonhub.schemas.session import JOINABLE_STATUSES, Session

EARLY_JOIN_MINUTES = 15
LATE_JOIN_MINUTES = 30

NOT_AVAILABLE_MESSAGE = "This session is not available right now."
EXPIRED_MESSAGE = "The join window for this session has expired."


@dataclass(frozen=True)
class JoinDecision:
    allowed: bool
    reason: str = ""
    minutes_until_open: Optional[int] = None
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "minutes_until_open": self.minutes_until_open,
            "window_start": self.window_start.isoformat() if self.window_start else None,
            "window_end": self.window_end.isoformat() if self.window_end else None,
        }


def join_window(session: Session) -> Tuple[datetime, datetime]:
    start = session.scheduled_at - timedelta(minutes=EARLY_JOIN_MINUTES)
    end = session.ends_at + timedelta(minutes=LATE_JOIN_MINUTES)
    return start, end


def evaluate_join_window(session: Session, now: Optional[datetime] = None) -> JoinDecision:
    """Decide whether the room may be entered at `now` (defaults to the current UTC time)."""
    if session.status not in JOINABLE_STATUSES:
        return JoinDecision(allowed=False, reason=NOT_AVAILABLE_MESSAGE)

    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    window_start, window_end = join_window(session)

    if now < window_start:
        # Rounded up so a user never reads "0 minutes" while still locked out.
        minutes = math.ceil((window_start - now).total_seconds() / 60)
        return JoinDecision(
            allowed=False,
            reason=(
                "This session is not available yet. "
                f"You can join in {minutes} minute{'s' if minutes != 1 else ''}."
            ),
            minutes_until_open=minutes,
            window_start=window_start,
            window_end=window_end,
        )

    if now > window_end:
        return JoinDecision(
            allowed=False,
            reason=EXPIRED_MESSAGE,
            window_start=window_start,
            window_end=window_end,
        )

    return JoinDecision(allowed=True, window_start=window_start, window_end=window_end)
