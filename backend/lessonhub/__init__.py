"""LessonHub session core: slots, booking drafts, join gating and live calls."""

__version__ = "1.0.0"
