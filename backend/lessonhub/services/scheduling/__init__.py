"""Scheduling services: slot calculation, join-window gate and timers."""

from lessonhub.services.scheduling.slot_calculator import (
    compute_slots,
    group_by_day,
    available_days,
    slots_for_day,
)

from lessonhub.services.scheduling.time_window import (
    EARLY_JOIN_MINUTES,
    LATE_JOIN_MINUTES,
    JoinDecision,
    join_window,
    evaluate_join_window,
)

from lessonhub.services.scheduling.timer import (
    TimerSnapshot,
    Countdown,
    compute_timer,
    countdown,
)

__all__ = [
    "compute_slots",
    "group_by_day",
    "available_days",
    "slots_for_day",
    "EARLY_JOIN_MINUTES",
    "LATE_JOIN_MINUTES",
    "JoinDecision",
    "join_window",
    "evaluate_join_window",
    "TimerSnapshot",
    "Countdown",
    "compute_timer",
    "countdown",
]
