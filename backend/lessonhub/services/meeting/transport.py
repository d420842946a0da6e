"""
Interfaces the call session drives: the real-time video transport and the
local media devices. Concrete implementations wrap a vendor SDK; tests use fakes.

Transport events are delivered through the `on_event` callback given to
`join()`, using the vendor's event names:
    joining-meeting, joined-meeting, left-meeting,
    participant-joined, participant-left, participant-updated,
    track-started, track-stopped,
    app-message, camera-error, error
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from lessonhub.schemas.meeting import CallParticipant, DevicePermissions, TransportEvent

EventCallback = Callable[[TransportEvent], None]

LOCAL_PARTICIPANT_KEY = "local"

ROSTER_EVENTS = frozenset({
    "participant-joined",
    "participant-left",
    "participant-updated",
    "track-started",
    "track-stopped",
})


class CallTransport(ABC):
    """One connection to a remote audio/video room."""

    @abstractmethod
    async def join(
        self,
        room_url: str,
        token: str,
        user_name: str,
        audio_on: bool,
        video_on: bool,
        on_event: EventCallback,
    ) -> None:
        """Connect; resolves once the handshake completes or raises on failure."""

    @abstractmethod
    async def leave(self) -> None:
        ...

    @abstractmethod
    async def destroy(self) -> None:
        """Release every resource the transport holds. Safe after leave()."""

    @abstractmethod
    def participants(self) -> Dict[str, Dict[str, Any]]:
        """Current participant map, keyed "local" for this client and by connection id otherwise."""

    @abstractmethod
    def set_local_audio(self, enabled: bool) -> None:
        ...

    @abstractmethod
    def set_local_video(self, enabled: bool) -> None:
        ...

    @abstractmethod
    async def start_screen_share(self) -> None:
        ...

    @abstractmethod
    def stop_screen_share(self) -> None:
        ...

    @abstractmethod
    def send_app_message(self, data: Dict[str, Any], to: str = "*") -> None:
        ...


class MediaStream(ABC):
    """An opened camera/microphone stream, e.g. the device-check preview."""

    @abstractmethod
    def stop(self) -> None:
        ...


class MediaDevices(ABC):
    """Local capture devices and the browser-style permission prompt."""

    @abstractmethod
    def supports_realtime(self) -> bool:
        """False when the environment has no real-time media capability at all."""

    @abstractmethod
    async def request_permissions(self) -> DevicePermissions:
        """Prompt for microphone and camera; each grant is reported independently."""

    @abstractmethod
    async def open_preview(self, audio: bool, video: bool) -> Optional[MediaStream]:
        ...


def _track_on(raw: Dict[str, Any], track: str, legacy_flag: str) -> bool:
    tracks = raw.get("tracks")
    if isinstance(tracks, dict) and track in tracks:
        return not (tracks.get(track) or {}).get("off", False)
    return bool(raw.get(legacy_flag, False))


def participant_from_transport(key: str, raw: Dict[str, Any]) -> CallParticipant:
    """Build one roster entry from a transport participant-map entry."""
    connection_id = raw.get("session_id") or key
    return CallParticipant(
        user_id=raw.get("user_id") or connection_id,
        display_name=raw.get("user_name") or "Participant",
        connection_id=connection_id,
        audio_on=_track_on(raw, "audio", "audio"),
        video_on=_track_on(raw, "video", "video"),
        screen_share_on=_track_on(raw, "screenVideo", "screen"),
        is_local=key == LOCAL_PARTICIPANT_KEY or bool(raw.get("local", False)),
    )
