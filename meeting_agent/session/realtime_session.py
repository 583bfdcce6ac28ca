"""
Realtime voice session facade.

RealtimeSession ties together the transport negotiator, the event normalizer,
the transcript assembler, the session state reducer and the mixed recorder,
and exposes the operations a caller drives a conversation with. Clients it
talks to are passed in by the owner; nothing here is a module-level singleton.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Union

import httpx
from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaRelay

from meeting_agent.config.constants import (
    DEFAULT_ASSISTANT_NAME,
    DEFAULT_TRANSCRIPTION_MODEL,
    LOGGER_NAME,
)
from meeting_agent.errors import ProtocolError, RealtimeSessionError, TransportError
from meeting_agent.handlers.event_normalizer import EventNormalizer
from meeting_agent.handlers.transcript_handlers import apply_event
from meeting_agent.models.events import EventKind, NormalizedEvent
from meeting_agent.models.realtime_schemas import (
    ConversationItemCreateMessage,
    ResponseCancelMessage,
    ResponseCreateMessage,
    SessionUpdateMessage,
)
from meeting_agent.models.session_state import (
    ActionType,
    ConnectionStatus,
    SessionAction,
    SessionState,
    reduce,
)
from meeting_agent.models.signaling_schemas import ProcessMeetingResponse
from meeting_agent.models.transcript import TranscriptAssembler, Turn
from meeting_agent.services.agent_service_client import AgentServiceClient
from meeting_agent.session.media import MicrophoneStreamTrack, RemoteAudioPlayer
from meeting_agent.session.negotiator import TransportNegotiator
from meeting_agent.session.recorder import (
    MixedRecorder,
    RecordingArtifact,
    RecordingRetryPolicy,
    start_recording_with_retry,
)

logger = logging.getLogger(LOGGER_NAME)


class RealtimeSession:
    """
    One realtime conversation between the local user and an agent.

    Observers (all optional, all called synchronously, exceptions logged):
        on_message(turn): a new transcript turn was opened
        on_error(exc): a RealtimeSessionError surfaced
        on_connected(): the transport reached "connected"
        on_disconnected(): the transport went away or disconnect() ran
        on_state_change(state): the SessionState value changed
    """

    def __init__(
        self,
        signaling: AgentServiceClient,
        agent_id: Optional[int] = None,
        meeting_id: Optional[int] = None,
        assistant_name: str = DEFAULT_ASSISTANT_NAME,
        ice_servers=None,
        media_source_factory: Callable[[], MediaStreamTrack] = MicrophoneStreamTrack,
        player: Optional[RemoteAudioPlayer] = None,
        transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL,
        retry_policy: RecordingRetryPolicy = RecordingRetryPolicy(),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.signaling = signaling
        self.agent_id = agent_id
        self.meeting_id = meeting_id
        self.assistant_name = assistant_name
        self.transcription_model = transcription_model
        self.retry_policy = retry_policy
        self._sleep = sleep

        # One relay feeds the peer connection, the player and the recorder
        self.relay = MediaRelay()
        self.negotiator = TransportNegotiator(
            signaling,
            agent_id=agent_id,
            ice_servers=ice_servers,
            media_source_factory=media_source_factory,
            relay=self.relay,
        )
        self.negotiator.set_handlers(
            on_state_change=self._handle_transport_state,
            on_track=self._handle_remote_track,
            on_channel_open=self._handle_channel_open,
            on_channel_message=self._handle_channel_message,
            on_channel_close=self._handle_channel_close,
        )
        self.recorder = MixedRecorder(relay=self.relay)
        self.player = player

        self.state = SessionState()
        self.muted = False
        self.last_recording: Optional[RecordingArtifact] = None
        self.transcript = TranscriptAssembler(on_message=self._handle_new_turn)
        self.normalizer = EventNormalizer()
        self.normalizer.register(self._handle_event)
        self._teardown_task: Optional[asyncio.Task] = None

        self.on_message: Optional[Callable[[Turn], None]] = None
        self.on_error: Optional[Callable[[RealtimeSessionError], None]] = None
        self.on_connected: Optional[Callable[[], None]] = None
        self.on_disconnected: Optional[Callable[[], None]] = None
        self.on_state_change: Optional[Callable[[SessionState], None]] = None

    # Observers

    def _notify(self, callback: Optional[Callable[..., Any]], *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Error in session observer: {e}", exc_info=True)

    def _dispatch(self, action: Union[SessionAction, NormalizedEvent]) -> None:
        new_state = reduce(self.state, action)
        if new_state != self.state:
            self.state = new_state
            self._notify(self.on_state_change, new_state)

    def _surface_error(self, error: RealtimeSessionError) -> None:
        self._notify(self.on_error, error)

    # Connection lifecycle

    async def connect(self) -> None:
        """
        Start a new conversation.

        A no-op while a transport exists. Otherwise the transcript from the
        previous attempt is cleared and a new transport is negotiated. On
        failure every acquired resource is released, the state becomes
        failed and on_error is called; a later connect() may retry.
        """
        if self._teardown_task is not None:
            await self._teardown_task
            self._teardown_task = None

        if self.negotiator.active:
            logger.info("Session already connected or connecting, ignoring connect")
            return

        self.transcript.reset()
        self.last_recording = None
        self._dispatch(SessionAction(type=ActionType.CONNECT_REQUESTED))
        logger.info(f"Connecting realtime session (agent={self.agent_id}, meeting={self.meeting_id})")

        try:
            negotiated = await self.negotiator.connect()
        except RealtimeSessionError as e:
            await self._fail(e)
            return
        except Exception as e:
            await self._fail(RealtimeSessionError(f"Failed to connect: {e}"))
            return

        if not negotiated:
            # disconnect() ran while negotiating
            logger.info("Connect abandoned, session was closed during negotiation")
            return

        local_track = self.negotiator.local_track
        if local_track is not None:
            local_track.enabled = not self.muted
        self.recorder.attach_local(local_track)

    async def _fail(self, error: RealtimeSessionError) -> None:
        logger.error(f"Realtime session failed: {error}")
        await self._teardown()
        self._dispatch(SessionAction(type=ActionType.CONNECT_FAILED, error=str(error)))
        self._surface_error(error)

    async def _teardown(self) -> None:
        """
        Release every resource of the current transport.

        The recorder is stopped first so its encoders flush, then the
        transport is closed, then playback stops. Every step tolerates
        having already run.
        """
        if self.recorder.is_recording:
            try:
                artifact = await self.recorder.stop_recording()
                if artifact is not None:
                    self.last_recording = artifact
            except Exception as e:
                logger.error(f"Error stopping recorder during teardown: {e}", exc_info=True)
        self.recorder.release()
        if self.state.recording:
            self._dispatch(SessionAction(type=ActionType.RECORDING_STOPPED))

        await self.negotiator.close()

        if self.player is not None:
            self.player.stop()

    def _schedule_teardown(self) -> None:
        if self._teardown_task is None or self._teardown_task.done():
            self._teardown_task = asyncio.ensure_future(self._teardown())

    async def disconnect(self) -> None:
        """
        End the conversation and release all resources.

        Safe to call repeatedly, and before any connect().
        """
        if self._teardown_task is not None:
            await self._teardown_task
            self._teardown_task = None

        previous = self.state
        await self._teardown()
        self._dispatch(SessionAction(type=ActionType.DISCONNECT_REQUESTED))

        if previous.status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED):
            logger.info("Realtime session disconnected")
            self._notify(self.on_disconnected)

    # Transport callbacks

    def _handle_transport_state(self, transport_state: str) -> None:
        previous = self.state
        self._dispatch(
            SessionAction(type=ActionType.TRANSPORT_STATE_CHANGED, transport_state=transport_state)
        )

        if transport_state == "connected":
            if previous.status is not ConnectionStatus.CONNECTED:
                self._notify(self.on_connected)
            return

        if transport_state not in ("failed", "disconnected", "closed"):
            return

        if transport_state == "failed":
            self._surface_error(TransportError("Connection failed"))
        # Release resources now so that a later connect() starts clean
        self._schedule_teardown()
        if previous.status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED):
            self._notify(self.on_disconnected)

    def _handle_remote_track(self, track: MediaStreamTrack) -> None:
        self.recorder.attach_remote(track)
        if self.player is not None:
            try:
                self.player.start(self.relay.subscribe(track))
            except (IOError, OSError) as e:
                logger.error(f"Could not start remote audio playback: {e}")

    def _handle_channel_open(self) -> None:
        update = SessionUpdateMessage.enable_transcription(self.transcription_model)
        if self.negotiator.send(update.to_json()):
            logger.info(f"Requested input transcription with {self.transcription_model}")

    def _handle_channel_message(self, message) -> None:
        self.normalizer.dispatch(message)

    def _handle_channel_close(self) -> None:
        self._dispatch(SessionAction(type=ActionType.CHANNEL_CLOSED))

    def _handle_event(self, event: NormalizedEvent) -> None:
        apply_event(event, self.transcript)
        self._dispatch(event)
        if event.kind is EventKind.ERROR:
            logger.error(f"Realtime API error: {event.error_message}")
            self._surface_error(ProtocolError(event.error_message or "Unknown error"))

    def _handle_new_turn(self, turn: Turn) -> None:
        self._notify(self.on_message, turn)

    # Conversation controls

    def send_text_message(self, text: str) -> bool:
        """
        Inject user text and request a response.

        Returns:
            bool: False if the text is blank or the data channel is not open
        """
        if not text or not text.strip():
            return False
        if not self.negotiator.channel_open:
            logger.warning("Cannot send text message: data channel not open")
            return False
        self.negotiator.send(ConversationItemCreateMessage.user_text(text).to_json())
        self.negotiator.send(ResponseCreateMessage().to_json())
        self.transcript.add_injected_text(text)
        return True

    def interrupt(self) -> None:
        """Cancel the in-progress response; speaking is cleared immediately."""
        if self.negotiator.channel_open:
            self.negotiator.send(ResponseCancelMessage().to_json())
        self._dispatch(SessionAction(type=ActionType.INTERRUPTED))

    def set_muted(self, muted: bool) -> None:
        """Silence or restore the local microphone without renegotiating."""
        self.muted = muted
        local_track = self.negotiator.local_track
        if local_track is not None:
            local_track.enabled = not muted
        logger.info(f"Microphone {'muted' if muted else 'unmuted'}")

    # Recording

    async def start_recording(self) -> bool:
        """
        Start recording both sides of the conversation.

        Returns:
            bool: False while either track is still missing
        """
        started = await self.recorder.start_recording()
        if started and not self.state.recording:
            self._dispatch(SessionAction(type=ActionType.RECORDING_STARTED))
        return started

    async def start_recording_with_retry(self) -> bool:
        """Keep trying start_recording() under the session's retry policy."""
        return await start_recording_with_retry(self.start_recording, self.retry_policy, self._sleep)

    async def stop_recording(self) -> Optional[RecordingArtifact]:
        """
        Stop recording. Safe to call when nothing is being recorded.

        Returns:
            The artifact, or None if no recording was active
        """
        artifact = await self.recorder.stop_recording()
        if artifact is not None:
            self.last_recording = artifact
        if self.state.recording:
            self._dispatch(SessionAction(type=ActionType.RECORDING_STOPPED))
        return artifact

    async def end_conversation(self, meeting_id: Optional[int] = None) -> Optional[ProcessMeetingResponse]:
        """
        Stop recording, disconnect and hand the transcript off for processing.

        Args:
            meeting_id: Meeting to process, the session's meeting_id by default

        Returns:
            The processing acknowledgement, or None if nothing was submitted
        """
        await self.stop_recording()
        await self.disconnect()

        meeting_id = meeting_id if meeting_id is not None else self.meeting_id
        records = self.transcript.transcript_records(self.assistant_name)
        if meeting_id is None:
            logger.info("No meeting id, skipping transcript processing")
            return None
        if not records:
            logger.info(f"No transcript to process for meeting {meeting_id}")
            return None

        try:
            return await self.signaling.submit_transcript(meeting_id, records)
        except (httpx.HTTPError, ValueError) as e:
            # ValueError covers undecodable or invalid acknowledgement bodies
            logger.error(f"Failed to submit transcript for meeting {meeting_id}: {e}")
            self._surface_error(RealtimeSessionError(f"Failed to submit transcript: {e}"))
            return None
