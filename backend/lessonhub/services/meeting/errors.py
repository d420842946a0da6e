"""
Meeting Error Classifier.

Reduces any raw call failure (an exception, a transport error event dict, or
a bare message string) to one MeetingErrorKind. Total: unmatched input is
`unknown`, and classification itself never raises.

Match order matters: HTTP status from the sessions API first, then device
permission signals, explicit authorization failures, room expiry and
finally connectivity.
"""

import asyncio
import logging
import re
from typing import Any, Optional

import httpx

from lessonhub.core.exceptions import RepositoryError, RepositoryNetworkError
from lessonhub.schemas.meeting import MeetingError, MeetingErrorKind

logger = logging.getLogger(__name__)

_PERMISSION_PATTERNS = re.compile(
    r"permission|notallowederror|notreadableerror|\bbusy\b|in use|cam-in-use|mic-in-use|cam-mic-in-use|"
    r"not-found-error|notfounderror|overconstrained|"
    r"(camera|microphone|\bmic\b|\bcam\b|device|media).{0,40}(denied|blocked)",
)
_UNAUTHORIZED_PATTERNS = re.compile(
    r"\b401\b|\b403\b|unauthori[sz]ed|forbidden|access denied|not-allowed|invalid token|"
    r"token expired|exp-token|meeting-token|eject",
)
_ROOM_EXPIRED_PATTERNS = re.compile(
    r"exp-room|no-room|room.*(expired|not found|does not exist|deleted)|expired|\b404\b|\b410\b",
)
_NETWORK_PATTERNS = re.compile(
    r"network|timeout|timed out|disconnect|connection|\bdns\b|\bice\b|unreachable|offline|"
    r"econnrefused|econnreset|signaling|websocket",
)

_MESSAGES = {
    MeetingErrorKind.PERMISSION: (
        "Camera or microphone access was denied or the device is in use. "
        "Check your browser settings and try again."
    ),
    MeetingErrorKind.NETWORK: "Connection to the meeting was lost. Check your network and try again.",
    MeetingErrorKind.ROOM_EXPIRED: "This meeting room is no longer available. Return to the session page.",
    MeetingErrorKind.UNAUTHORIZED: "You are not allowed to join this meeting. Check that you are signed in with the right account.",
    MeetingErrorKind.UNKNOWN: "Something went wrong with the call. Please try again.",
}


def _signal_text(raw: Any) -> str:
    """Flatten whatever the transport handed us into one lowercase string."""
    if raw is None:
        return ""
    if isinstance(raw, BaseException):
        parts = [type(raw).__name__, str(raw)]
        if isinstance(raw, RepositoryError) and raw.status_code:
            parts.append(str(raw.status_code))
        return " ".join(parts).lower()
    if isinstance(raw, dict):
        parts = []
        for key in ("type", "errorMsg", "error", "message", "msg", "name", "code", "status"):
            value = raw.get(key)
            if isinstance(value, dict):
                parts.append(_signal_text(value))
            elif value is not None:
                parts.append(str(value))
        return " ".join(parts).lower()
    return str(raw).lower()


def _kind_for(raw: Any, text: str) -> MeetingErrorKind:
    # Room and token endpoints speak HTTP; their status code is authoritative.
    if isinstance(raw, RepositoryError) and not isinstance(raw, RepositoryNetworkError):
        if raw.status_code in (401, 403):
            return MeetingErrorKind.UNAUTHORIZED
        if raw.status_code in (404, 410):
            return MeetingErrorKind.ROOM_EXPIRED
    if _PERMISSION_PATTERNS.search(text):
        return MeetingErrorKind.PERMISSION
    if _UNAUTHORIZED_PATTERNS.search(text):
        return MeetingErrorKind.UNAUTHORIZED
    if _ROOM_EXPIRED_PATTERNS.search(text):
        return MeetingErrorKind.ROOM_EXPIRED
    if isinstance(raw, (RepositoryNetworkError, httpx.TransportError, ConnectionError, asyncio.TimeoutError)):
        return MeetingErrorKind.NETWORK
    if _NETWORK_PATTERNS.search(text):
        return MeetingErrorKind.NETWORK
    return MeetingErrorKind.UNKNOWN


def classify_error(raw: Any, message: Optional[str] = None) -> MeetingError:
    """Map a raw failure signal to a MeetingError. Never raises."""
    try:
        text = _signal_text(raw)
        kind = _kind_for(raw, text)
    except Exception as e:  # a broken __str__ on a foreign exception must not escape
        logger.warning(f"[MeetingErrors] Could not inspect raw error {type(raw).__name__}: {e}")
        text = ""
        kind = MeetingErrorKind.UNKNOWN

    error = MeetingError(kind=kind, message=message or _MESSAGES[kind], details=text or None)
    logger.warning(f"[MeetingErrors] Classified as {kind.value} (recoverable={error.recoverable}): {text}")
    return error
