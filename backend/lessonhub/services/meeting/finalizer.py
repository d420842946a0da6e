"""
Session Completion Finalizer.

"End session" from inside the call:
  - mentor: validate the outcome, submit it with the completion request,
    and only once the server accepted it leave the call
  - mentee: plain leave, no outcome; the mentor or the backend finalizes

While a completion request is in flight further calls are ignored, so the
dialog cannot double-submit.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from lessonhub.core.exceptions import FinalizationError
from lessonhub.schemas.session import CompleteSessionData, SessionStatus

logger = logging.getLogger(__name__)


class Role(str, Enum):
    MENTOR = "mentor"
    MENTEE = "mentee"


TOPIC_VOCABULARY = {
    "quran_reading": "Quran reading",
    "tajweed": "Tajweed",
    "memorization": "Memorization",
    "revision": "Revision",
    "arabic": "Arabic",
    "fiqh": "Fiqh",
    "aqeedah": "Aqeedah",
    "other": "Other",
}

MASTERY_MIN = 0
MASTERY_MAX = 100
MASTERY_STEP = 5
DEFAULT_MASTERY = 50


def mastery_label(level: int) -> str:
    if level < 25:
        return "Beginner"
    if level < 50:
        return "Progressing"
    if level < 75:
        return "Intermediate"
    if level < 90:
        return "Advanced"
    return "Mastered"


@dataclass
class SessionOutcome:
    """What the mentor records when ending a lesson."""
    notes: str = ""
    topics: List[str] = field(default_factory=list)
    mastery_level: int = DEFAULT_MASTERY

    def validate(self) -> None:
        unknown = [t for t in self.topics if t not in TOPIC_VOCABULARY]
        if unknown:
            raise FinalizationError(
                f"Unknown topic(s): {', '.join(unknown)}",
                details={"allowed": list(TOPIC_VOCABULARY)},
            )
        if not MASTERY_MIN <= self.mastery_level <= MASTERY_MAX or self.mastery_level % MASTERY_STEP:
            raise FinalizationError(
                f"Mastery level must be between {MASTERY_MIN} and {MASTERY_MAX} in steps of {MASTERY_STEP}",
                details={"mastery_level": self.mastery_level},
            )

    def to_complete_data(self) -> CompleteSessionData:
        return CompleteSessionData(
            notes=self.notes.strip() or None,
            topics_covered=list(dict.fromkeys(self.topics)) or None,
            mastery_level=self.mastery_level,
        )


class SessionFinalizer:
    """Binds the end-session action of one call to the viewer's role."""

    def __init__(self, call, repository, role: Role):
        self.call = call
        self.repository = repository
        self.role = Role(role)
        self._in_flight = False
        self._completed = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def completed(self) -> bool:
        return self._completed

    async def end_session(self, outcome: Optional[SessionOutcome] = None) -> bool:
        """
        Returns True when a completion was submitted by this call, False when
        it only left the call or was ignored because a submission is pending.
        Repository failures propagate and the call stays connected.
        """
        if self._in_flight:
            logger.info(f"[Finalizer] {self.call.session.id}: completion already in flight, ignoring")
            return False

        if self.role == Role.MENTEE:
            if outcome is not None:
                raise FinalizationError("Only the mentor can record a session outcome")
            await self.call.leave()
            return False

        outcome = outcome or SessionOutcome()
        outcome.validate()

        status = self.call.session.status
        if self._completed or status.is_terminal:
            logger.info(f"[Finalizer] {self.call.session.id}: session already {status.value}, leaving only")
            await self.call.leave()
            return False

        self._in_flight = True
        try:
            await self.repository.complete(self.call.session.id, outcome.to_complete_data())
        finally:
            self._in_flight = False

        self._completed = True
        # The server owns the status; this copy only stops a second submission.
        self.call.session = self.call.session.model_copy(update={"status": SessionStatus.COMPLETED})
        logger.info(
            f"[Finalizer] {self.call.session.id}: completed "
            f"(mastery {outcome.mastery_level}%, {mastery_label(outcome.mastery_level)})"
        )
        await self.call.leave()
        return True
