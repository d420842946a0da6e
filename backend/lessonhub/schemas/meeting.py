"""
Live meeting schemas: call states, roster entries, chat log entries and classified errors.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class CallState(str, Enum):
    IDLE = "idle"
    UNSUPPORTED = "unsupported"     # no real-time media capability; terminal notice
    DEVICE_CHECK = "device_check"
    JOINING = "joining"
    JOINED = "joined"
    ERROR = "error"
    LEFT = "left"


class MeetingErrorKind(str, Enum):
    PERMISSION = "permission"
    NETWORK = "network"
    ROOM_EXPIRED = "room-expired"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN = "unknown"


RECOVERABLE_KINDS = frozenset({
    MeetingErrorKind.PERMISSION,
    MeetingErrorKind.NETWORK,
    MeetingErrorKind.UNKNOWN,
})


@dataclass(frozen=True)
class MeetingError:
    """A call failure reduced to the closed taxonomy."""
    kind: MeetingErrorKind
    message: str
    details: Optional[str] = None

    @property
    def recoverable(self) -> bool:
        return self.kind in RECOVERABLE_KINDS

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


@dataclass(frozen=True)
class CallParticipant:
    """One roster entry, rebuilt from the transport's participant map."""
    user_id: str
    display_name: str
    connection_id: str
    audio_on: bool
    video_on: bool
    screen_share_on: bool
    is_local: bool

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "connection_id": self.connection_id,
            "audio_on": self.audio_on,
            "video_on": self.video_on,
            "screen_share_on": self.screen_share_on,
            "is_local": self.is_local,
        }


@dataclass(frozen=True)
class ChatMessage:
    """In-call text message; ordering is arrival order."""
    id: str
    sender_id: str
    sender_name: str
    content: str
    timestamp: datetime
    is_local: bool

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "sender_name": self.sender_name,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "is_local": self.is_local,
        }


@dataclass(frozen=True)
class DevicePermissions:
    audio: bool = False
    video: bool = False

    @property
    def any_granted(self) -> bool:
        return self.audio or self.video


@dataclass(frozen=True)
class JoinConfig:
    """User choices made in the device check before joining."""
    user_name: str
    audio_enabled: bool = True
    video_enabled: bool = True


@dataclass(frozen=True)
class TransportEvent:
    """
    One callback from the video transport, queued for the call session.
    `kind` uses the transport's event names, e.g. "joined-meeting", "participant-left".
    """
    kind: str
    payload: Dict[str, Any] = field(default_factory=dict)
