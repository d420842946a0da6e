"""
Call Session state machine.

Owns one live audio/video connection for one Session:

  idle → device_check → joining → joined → left
                 │           │        │
                 │           └────────┴──→ error ──(retry, recoverable only)──→ device_check
                 └──→ unsupported   (no real-time media capability; never joins)

Transport callbacks are pushed onto a bounded asyncio.Queue and applied by a
single pump task, in delivery order. The roster is rebuilt from the
transport's participant map on every roster event, never patched.

Every path out of the machine (leave, error, context exit) releases the
device-check preview stream.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, List, Optional

from lessonhub.core.exceptions import CallStateError
from lessonhub.schemas.meeting import (
    CallParticipant,
    CallState,
    ChatMessage,
    DevicePermissions,
    JoinConfig,
    MeetingError,
    MeetingErrorKind,
    TransportEvent,
)
from lessonhub.schemas.session import Session
from lessonhub.services.meeting.errors import classify_error
from lessonhub.services.meeting.transport import (
    LOCAL_PARTICIPANT_KEY,
    ROSTER_EVENTS,
    CallTransport,
    MediaDevices,
    MediaStream,
    participant_from_transport,
)

logger = logging.getLogger(__name__)

EVENT_QUEUE_SIZE = 1000
CHAT_MESSAGE_TYPE = "chat"


class CallSession:
    """
    Single-writer container for one call. Only its own methods and the event
    pump mutate it; the UI reads `snapshot()`.
    """

    def __init__(
        self,
        session: Session,
        repository,
        transport: CallTransport,
        devices: MediaDevices,
        queue_size: int = EVENT_QUEUE_SIZE,
    ):
        self.session = session
        self.repository = repository
        self.transport = transport
        self.devices = devices

        self.state = CallState.IDLE
        self.error: Optional[MeetingError] = None
        self.roster: List[CallParticipant] = []
        self.messages: List[ChatMessage] = []
        self.permissions: Optional[DevicePermissions] = None
        self.audio_enabled = False
        self.video_enabled = False
        self.screen_sharing = False
        self.room_url: Optional[str] = session.meeting_room_reference

        self._queue_size = queue_size
        self._events: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._pump: Optional[asyncio.Task] = None
        self._join_task: Optional[asyncio.Task] = None
        self._preview: Optional[MediaStream] = None
        self._generation = 0
        self._leaving = False
        self._user_name = ""

    async def __aenter__(self) -> "CallSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.leave()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, new_state: CallState) -> None:
        if new_state != self.state:
            logger.info(f"[CallSession] {self.session.id}: {self.state.value} → {new_state.value}")
            self.state = new_state

    def _release_preview(self) -> None:
        if self._preview is not None:
            preview, self._preview = self._preview, None
            preview.stop()

    def _fail(self, raw: Any) -> None:
        self.error = raw if isinstance(raw, MeetingError) else classify_error(raw)
        self._release_preview()
        self.roster = []
        self.screen_sharing = False
        self._transition(CallState.ERROR)

    def _ensure_pump(self) -> None:
        if self._pump is None or self._pump.done():
            self._pump = asyncio.ensure_future(self._pump_events())

    def _on_transport_event(self, generation: int, event: TransportEvent) -> None:
        """Callback handed to the transport, bound to one connection attempt. Only enqueues."""
        if generation != self._generation or self._leaving:
            logger.debug(f"[CallSession] {self.session.id}: dropping stale {event.kind}")
            return
        if self.state not in (CallState.JOINING, CallState.JOINED):
            return
        try:
            self._events.put_nowait(event)
        except asyncio.QueueFull:
            logger.error(f"[CallSession] {self.session.id}: event queue full, dropping {event.kind}")
            self._fail(MeetingError(
                kind=MeetingErrorKind.UNKNOWN,
                message="The call fell behind and was interrupted. Please rejoin.",
                details=f"event queue full at {self._queue_size}",
            ))

    async def _pump_events(self) -> None:
        while True:
            queue = self._events
            event = await queue.get()
            try:
                await self._apply(event)
            except Exception as e:
                logger.error(f"[CallSession] Failed to apply {event.kind}: {e}", exc_info=True)
                self._fail(e)
            finally:
                queue.task_done()
            # A remote "left-meeting" shuts the call down from inside the pump.
            if self.state == CallState.LEFT:
                return

    async def _apply(self, event: TransportEvent) -> None:
        kind = event.kind
        payload = event.payload if isinstance(event.payload, dict) else {}
        logger.debug(f"[CallSession] {self.session.id}: event {kind}")

        if kind == "joined-meeting":
            if self.state == CallState.JOINING:
                self._transition(CallState.JOINED)
                self._refresh_roster()
        elif kind in ROSTER_EVENTS:
            if self.state == CallState.JOINED:
                self._refresh_roster()
        elif kind == "app-message":
            if self.state == CallState.JOINED:
                self._receive_message(payload)
        elif kind == "camera-error":
            # Non-fatal; an error already held in ERROR is never replaced.
            if self.state in (CallState.JOINING, CallState.JOINED):
                self._camera_error(payload)
        elif kind == "left-meeting":
            if self.state in (CallState.JOINING, CallState.JOINED):
                await self._shutdown()
                self._transition(CallState.LEFT)
        elif kind == "error":
            if self.state in (CallState.JOINING, CallState.JOINED):
                self._fail(event.payload)

    def _camera_error(self, payload: Dict[str, Any]) -> None:
        raw = payload.get("error")
        if isinstance(raw, dict):
            details = raw.get("msg") or raw.get("type")
        else:
            details = raw
        self.error = MeetingError(
            kind=MeetingErrorKind.PERMISSION,
            message="Could not access the camera.",
            details=str(details) if details else None,
        )
        logger.warning(f"[CallSession] {self.session.id}: camera error {raw!r}")

    def _refresh_roster(self) -> None:
        participants = self.transport.participants()
        roster = [participant_from_transport(key, raw) for key, raw in participants.items()]
        roster.sort(key=lambda p: (not p.is_local, p.display_name.lower()))
        self.roster = roster

        local = next((p for p in roster if p.is_local), None)
        if local is not None:
            self.audio_enabled = local.audio_on
            self.video_enabled = local.video_on
            self.screen_sharing = local.screen_share_on

    def _receive_message(self, payload: Dict[str, Any]) -> None:
        data = payload.get("data")
        from_id = payload.get("fromId")
        if not isinstance(data, dict):
            logger.debug(f"[CallSession] {self.session.id}: ignoring non-dict app message from {from_id}")
            return
        if data.get("type") != CHAT_MESSAGE_TYPE or from_id == LOCAL_PARTICIPANT_KEY:
            return
        self.messages.append(ChatMessage(
            id=uuid.uuid4().hex,
            sender_id=from_id or "unknown",
            sender_name=data.get("senderName") or "Participant",
            content=str(data.get("message", "")),
            timestamp=datetime.now(timezone.utc),
            is_local=False,
        ))

    def _require(self, *states: CallState) -> None:
        if self.state not in states:
            raise CallStateError(
                f"Action not allowed while call is {self.state.value}",
                details={"state": self.state.value, "allowed": [s.value for s in states]},
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def check_devices(self) -> Optional[DevicePermissions]:
        """
        Enter device_check: ask for microphone/camera once, then open a local preview.
        Returns the grants, or None when the environment cannot do real-time media.
        """
        self._require(CallState.IDLE, CallState.DEVICE_CHECK)

        if not self.devices.supports_realtime():
            logger.warning(f"[CallSession] {self.session.id}: real-time media not supported")
            self._transition(CallState.UNSUPPORTED)
            return None

        self._transition(CallState.DEVICE_CHECK)
        generation = self._generation

        try:
            if self.permissions is None:
                permissions = await self.devices.request_permissions()
                if generation != self._generation or self.state != CallState.DEVICE_CHECK:
                    return permissions
                self.permissions = permissions
                logger.info(
                    f"[CallSession] {self.session.id}: permissions audio={permissions.audio} video={permissions.video}"
                )

            self._release_preview()
            if self.permissions.any_granted:
                stream = await self.devices.open_preview(self.permissions.audio, self.permissions.video)
                if generation != self._generation or self.state != CallState.DEVICE_CHECK:
                    if stream is not None:
                        stream.stop()
                    return self.permissions
                self._preview = stream
        except Exception as e:
            logger.warning(f"[CallSession] {self.session.id}: device check failed: {e}")
            self._fail(e)
            return self.permissions

        self.audio_enabled = self.permissions.audio
        self.video_enabled = self.permissions.video
        return self.permissions

    async def join(self, config: JoinConfig) -> CallState:
        """
        Connect to the room: reuse the session's room reference or create one,
        fetch a per-user token, then hand over to the transport. The machine
        reaches `joined` when the transport reports it.
        """
        self._require(CallState.IDLE, CallState.DEVICE_CHECK)

        audio_on = config.audio_enabled
        video_on = config.video_enabled
        if self.permissions is not None:
            audio_on = audio_on and self.permissions.audio
            video_on = video_on and self.permissions.video

        self._user_name = config.user_name
        self.audio_enabled = audio_on
        self.video_enabled = video_on
        generation = self._generation

        # The transport opens its own devices.
        self._release_preview()
        self._transition(CallState.JOINING)
        self._ensure_pump()

        self._join_task = asyncio.ensure_future(self._connect(audio_on, video_on, generation))
        try:
            await self._join_task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.info(f"[CallSession] {self.session.id}: join cancelled by leave")
                return CallState.LEFT
            raise
        except Exception as e:
            if generation == self._generation:
                logger.warning(f"[CallSession] {self.session.id}: join failed: {e}")
                self._fail(e)
        finally:
            self._join_task = None
        return self.state

    async def _connect(self, audio_on: bool, video_on: bool, generation: int) -> None:
        room_url = self.room_url
        if not room_url:
            room = await self.repository.create_meeting_room(self.session.id)
            if generation != self._generation:
                return
            room_url = room.meeting_url
            self.room_url = room_url
            logger.info(f"[CallSession] {self.session.id}: created room {room.room_name or room_url}")

        token = await self.repository.get_meeting_token(self.session.id)
        if generation != self._generation:
            return

        await self.transport.join(
            room_url,
            token.token,
            self._user_name,
            audio_on,
            video_on,
            partial(self._on_transport_event, generation),
        )

    async def retry(self) -> Optional[DevicePermissions]:
        """Go back to device_check after a recoverable error. Reuses the permissions already granted."""
        self._require(CallState.ERROR)
        if self.error is not None and not self.error.recoverable:
            raise CallStateError(
                "This call error cannot be retried",
                details={"kind": self.error.kind.value},
            )
        # Callbacks bound to the failed attempt are dropped from here on.
        self._generation += 1
        await self._stop_pump()
        try:
            await self.transport.leave()
        except Exception as e:
            logger.warning(f"[CallSession] {self.session.id}: transport leave before retry failed: {e}")

        self.error = None
        self._transition(CallState.DEVICE_CHECK)
        return await self.check_devices()

    async def leave(self) -> None:
        """Tear everything down and move to `left`. Idempotent; a no-op from idle."""
        if self.state in (CallState.IDLE, CallState.LEFT) or self._leaving:
            return
        self._leaving = True
        try:
            self._generation += 1
            if self._join_task is not None and not self._join_task.done():
                self._join_task.cancel()
                try:
                    await self._join_task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    logger.warning(f"[CallSession] {self.session.id}: join ended with {e} during leave")
            await self._shutdown()
            self._transition(CallState.LEFT)
        finally:
            self._leaving = False

    async def _shutdown(self) -> None:
        """Stop the pump, drop pending events, release devices and the transport, clear state."""
        self._release_preview()
        await self._stop_pump()

        try:
            await self.transport.leave()
        except Exception as e:
            logger.warning(f"[CallSession] {self.session.id}: transport leave failed: {e}")
        finally:
            await self.transport.destroy()

        self.roster = []
        self.messages = []
        self.error = None
        self.audio_enabled = False
        self.video_enabled = False
        self.screen_sharing = False

    async def _stop_pump(self) -> None:
        """Cancel the pump and start over with an empty queue."""
        pump, self._pump = self._pump, None
        if pump is not None and pump is not asyncio.current_task():
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass
        self._events = asyncio.Queue(maxsize=self._queue_size)

    async def drain(self) -> None:
        """Wait until every event queued so far has been applied."""
        await self._events.join()

    # ------------------------------------------------------------------
    # In-call actions
    # ------------------------------------------------------------------

    def toggle_audio(self) -> bool:
        self._require(CallState.JOINED)
        self.audio_enabled = not self.audio_enabled
        self.transport.set_local_audio(self.audio_enabled)
        return self.audio_enabled

    def toggle_video(self) -> bool:
        self._require(CallState.JOINED)
        self.video_enabled = not self.video_enabled
        self.transport.set_local_video(self.video_enabled)
        return self.video_enabled

    async def toggle_screen_share(self) -> bool:
        self._require(CallState.JOINED)
        if self.screen_sharing:
            self.transport.stop_screen_share()
            self.screen_sharing = False
            return False
        try:
            await self.transport.start_screen_share()
        except Exception as e:
            logger.warning(f"[CallSession] {self.session.id}: screen share failed: {e}")
            self.error = MeetingError(
                kind=MeetingErrorKind.PERMISSION,
                message="Screen sharing could not be started.",
                details=str(e) or None,
            )
            return False
        self.screen_sharing = True
        return True

    def send_message(self, content: str) -> Optional[ChatMessage]:
        """Broadcast a chat message and append it to the local log right away."""
        self._require(CallState.JOINED)
        if not content or not content.strip():
            return None

        local = self.transport.participants().get(LOCAL_PARTICIPANT_KEY) or {}
        sender_name = local.get("user_name") or self._user_name or "You"
        self.transport.send_app_message(
            {"type": CHAT_MESSAGE_TYPE, "message": content, "senderName": sender_name},
            "*",
        )
        message = ChatMessage(
            id=uuid.uuid4().hex,
            sender_id=local.get("user_id") or LOCAL_PARTICIPANT_KEY,
            sender_name=sender_name,
            content=content,
            timestamp=datetime.now(timezone.utc),
            is_local=True,
        )
        self.messages.append(message)
        return message

    def snapshot(self) -> Dict[str, Any]:
        return {
            "session_id": self.session.id,
            "state": self.state.value,
            "error": self.error.to_dict() if self.error else None,
            "roster": [p.to_dict() for p in self.roster],
            "messages": [m.to_dict() for m in self.messages],
            "audio_enabled": self.audio_enabled,
            "video_enabled": self.video_enabled,
            "screen_sharing": self.screen_sharing,
            "permissions": (
                {"audio": self.permissions.audio, "video": self.permissions.video}
                if self.permissions else None
            ),
            "room_url": self.room_url,
        }
