"""
Shared fixtures and fakes.
No external services required: the sessions API, video transport, media
devices and Redis are all replaced in-process.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from lessonhub.schemas.booking import BookingSlot
from lessonhub.schemas.meeting import DevicePermissions, TransportEvent
from lessonhub.schemas.session import MeetingRoom, MeetingToken, Session, SessionStatus
from lessonhub.services.booking.draft_store import DraftStorage
from lessonhub.services.meeting.call_session import CallSession
from lessonhub.services.meeting.transport import CallTransport, MediaDevices, MediaStream

UTC = timezone.utc


def make_session(
    status: SessionStatus = SessionStatus.CONFIRMED,
    scheduled_at: Optional[datetime] = None,
    duration: int = 60,
    meeting_url: Optional[str] = None,
    session_id: str = "session-1",
) -> Session:
    return Session(
        id=session_id,
        mentor_id="mentor-1",
        mentee_id="mentee-1",
        scheduled_at=scheduled_at or datetime(2025, 3, 10, 10, 0, tzinfo=UTC),
        duration_minutes=duration,
        status=status,
        meeting_room_reference=meeting_url,
    )


def make_slot(start: datetime, minutes: int = 60, mentor_id: str = "mentor-1") -> BookingSlot:
    end = start + timedelta(minutes=minutes)
    return BookingSlot(
        date=start.date().isoformat(),
        start_time=start.strftime("%H:%M"),
        end_time=end.strftime("%H:%M"),
        start_at=start,
        end_at=end,
        mentor_id=mentor_id,
    )


# ---------------------------------------------------------------------------
# Fake media devices
# ---------------------------------------------------------------------------

class FakeStream(MediaStream):
    def __init__(self, audio: bool, video: bool):
        self.audio = audio
        self.video = video
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class FakeDevices(MediaDevices):
    def __init__(self, supported: bool = True, permissions: Optional[DevicePermissions] = None,
                 block_permissions: bool = False, permission_error: Optional[Exception] = None):
        self.supported = supported
        self.permissions = permissions or DevicePermissions(audio=True, video=True)
        self.permission_requests = 0
        self.permission_error = permission_error
        self.streams: List[FakeStream] = []
        self.release_permissions = asyncio.Event() if block_permissions else None

    def supports_realtime(self) -> bool:
        return self.supported

    async def request_permissions(self) -> DevicePermissions:
        self.permission_requests += 1
        if self.release_permissions is not None:
            await self.release_permissions.wait()
        if self.permission_error is not None:
            raise self.permission_error
        return self.permissions

    async def open_preview(self, audio: bool, video: bool) -> FakeStream:
        stream = FakeStream(audio, video)
        self.streams.append(stream)
        return stream


# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------

class FakeTransport(CallTransport):
    """Keeps a participant map like the vendor SDK and emits events on demand."""

    def __init__(self, join_error: Optional[Exception] = None, screen_share_error: Optional[Exception] = None,
                 block_join: bool = False):
        self.join_error = join_error
        self.screen_share_error = screen_share_error
        self.participant_map: Dict[str, Dict[str, Any]] = {}
        self.on_event = None
        self.joined_with: Optional[dict] = None
        self.leave_calls = 0
        self.destroy_calls = 0
        self.sent: List[tuple] = []
        self.local_audio: Optional[bool] = None
        self.local_video: Optional[bool] = None
        self.screen_share_stopped = False
        self.join_started = asyncio.Event()
        self.release_join = asyncio.Event() if block_join else None

    async def join(self, room_url, token, user_name, audio_on, video_on, on_event) -> None:
        self.on_event = on_event
        self.joined_with = {
            "room_url": room_url,
            "token": token,
            "user_name": user_name,
            "audio_on": audio_on,
            "video_on": video_on,
        }
        self.join_started.set()
        if self.release_join is not None:
            await self.release_join.wait()
        if self.join_error is not None:
            raise self.join_error
        self.participant_map["local"] = {
            "user_id": "user-local",
            "user_name": user_name,
            "session_id": "conn-local",
            "local": True,
            "tracks": {
                "audio": {"off": not audio_on},
                "video": {"off": not video_on},
                "screenVideo": {"off": True},
            },
        }
        self.emit("joined-meeting")

    async def leave(self) -> None:
        self.leave_calls += 1
        self.participant_map.clear()

    async def destroy(self) -> None:
        self.destroy_calls += 1

    def participants(self) -> Dict[str, Dict[str, Any]]:
        return dict(self.participant_map)

    def set_local_audio(self, enabled: bool) -> None:
        self.local_audio = enabled

    def set_local_video(self, enabled: bool) -> None:
        self.local_video = enabled

    async def start_screen_share(self) -> None:
        if self.screen_share_error is not None:
            raise self.screen_share_error

    def stop_screen_share(self) -> None:
        self.screen_share_stopped = True

    def send_app_message(self, data, to="*") -> None:
        self.sent.append((data, to))

    # Test helpers

    def emit(self, kind: str, **payload) -> None:
        self.on_event(TransportEvent(kind=kind, payload=payload))

    def add_remote(self, connection_id: str, user_id: str, name: str) -> None:
        self.participant_map[connection_id] = {
            "user_id": user_id,
            "user_name": name,
            "session_id": connection_id,
            "tracks": {"audio": {"off": False}, "video": {"off": False}, "screenVideo": {"off": True}},
        }
        self.emit("participant-joined", participant=self.participant_map[connection_id])

    def remove_remote(self, connection_id: str) -> None:
        participant = self.participant_map.pop(connection_id)
        self.emit("participant-left", participant=participant)


def make_repository() -> MagicMock:
    repository = MagicMock()
    repository.create_meeting_room = AsyncMock(return_value=MeetingRoom(
        meeting_url="https://rooms.example.com/session-1", room_name="session-1",
    ))
    repository.get_meeting_token = AsyncMock(return_value=MeetingToken(
        token="token-abc", expires_at=datetime(2025, 3, 10, 12, 0, tzinfo=UTC),
    ))
    repository.complete = AsyncMock(return_value=None)
    return repository


@pytest.fixture
def memory_storage():
    return DraftStorage(use_redis=False)


@pytest.fixture
def call_factory():
    """
    Builds a CallSession plus its fakes. Call it from inside the async test so
    the event queue belongs to the running loop.
    """
    def _build(session: Optional[Session] = None, transport: Optional[FakeTransport] = None,
               devices: Optional[FakeDevices] = None, repository: Optional[MagicMock] = None):
        transport = transport or FakeTransport()
        devices = devices or FakeDevices()
        repository = repository or make_repository()
        call = CallSession(session or make_session(), repository, transport, devices)
        return call, transport, devices, repository
    return _build
