"""Live meeting services: call state machine, error classification and completion."""

from lessonhub.services.meeting.errors import classify_error
from lessonhub.services.meeting.transport import (
    CallTransport,
    MediaDevices,
    MediaStream,
    participant_from_transport,
)
from lessonhub.services.meeting.call_session import CallSession
from lessonhub.services.meeting.finalizer import (
    Role,
    SessionFinalizer,
    SessionOutcome,
    TOPIC_VOCABULARY,
    mastery_label,
)

__all__ = [
    "classify_error",
    "CallTransport",
    "MediaDevices",
    "MediaStream",
    "participant_from_transport",
    "CallSession",
    "Role",
    "SessionFinalizer",
    "SessionOutcome",
    "TOPIC_VOCABULARY",
    "mastery_label",
]
