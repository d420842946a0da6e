"""
Session timer and start countdown.

Pure time arithmetic for the in-call clock and the "starts in ..." badge.
Nothing here sleeps or schedules; callers pass `now` on every tick.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

ENDING_SOON_MINUTES = 5


def _format_clock(seconds: int) -> str:
    minutes, secs = divmod(max(seconds, 0), 60)
    return f"{minutes:02d}:{secs:02d}"


@dataclass(frozen=True)
class TimerSnapshot:
    elapsed_seconds: int
    remaining_seconds: int
    total_seconds: int
    progress_percent: float
    is_overtime: bool
    is_ending_soon: bool

    @property
    def label(self) -> str:
        if self.is_overtime:
            over = self.elapsed_seconds - self.total_seconds
            return f"+{_format_clock(over)} / {_format_clock(self.total_seconds)}"
        return f"{_format_clock(self.elapsed_seconds)} / {_format_clock(self.total_seconds)}"

    def to_dict(self) -> dict:
        return {
            "elapsed_seconds": self.elapsed_seconds,
            "remaining_seconds": self.remaining_seconds,
            "total_seconds": self.total_seconds,
            "progress_percent": self.progress_percent,
            "is_overtime": self.is_overtime,
            "is_ending_soon": self.is_ending_soon,
            "label": self.label,
        }


def compute_timer(started_at: datetime, duration_minutes: int, now: Optional[datetime] = None) -> TimerSnapshot:
    """
    Elapsed and remaining time for a call that started at `started_at`.

    Before the start, elapsed is 0. Once past the planned duration the timer
    stays at zero remaining and reports overtime.
    """
    now = now or datetime.now(timezone.utc)
    total = duration_minutes * 60
    elapsed = max(int((now - started_at).total_seconds()), 0)
    remaining = max(total - elapsed, 0)
    progress = min(elapsed / total * 100, 100.0) if total else 100.0
    overtime = elapsed > total
    return TimerSnapshot(
        elapsed_seconds=elapsed,
        remaining_seconds=remaining,
        total_seconds=total,
        progress_percent=round(progress, 1),
        is_overtime=overtime,
        is_ending_soon=not overtime and 0 < remaining <= ENDING_SOON_MINUTES * 60,
    )


@dataclass(frozen=True)
class Countdown:
    label: str
    urgency: str    # "urgent" | "warning" | "neutral" | "started"
    seconds_until: int

    def to_dict(self) -> dict:
        return {"label": self.label, "urgency": self.urgency, "seconds_until": self.seconds_until}


def countdown(scheduled_at: datetime, now: Optional[datetime] = None) -> Countdown:
    """Human-readable time until a session starts."""
    now = now or datetime.now(timezone.utc)
    delta = scheduled_at - now
    seconds = int(delta.total_seconds())

    if seconds <= 0:
        return Countdown(label="Started", urgency="started", seconds_until=0)

    days = delta.days
    hours = seconds // 3600
    minutes = max(seconds // 60, 1)

    if days >= 1:
        label = f"in {days} day{'s' if days != 1 else ''}"
    elif hours >= 1:
        label = f"in {hours}h"
    else:
        label = f"in {minutes} min"

    if delta < timedelta(hours=1):
        urgency = "urgent"
    elif delta < timedelta(hours=24):
        urgency = "warning"
    else:
        urgency = "neutral"
    return Countdown(label=label, urgency=urgency, seconds_until=seconds)
