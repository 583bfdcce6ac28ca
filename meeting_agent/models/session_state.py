"""
Session state machine for a realtime audio conversation.

The state is an immutable SessionState value and every transition goes through
the pure reduce() function, taking the current state and either a
SessionAction (transport and caller driven) or a NormalizedEvent (upstream
driven) and returning the next state. The reducer can be exercised without
any transport.
"""

import logging
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from meeting_agent.config.constants import LOGGER_NAME
from meeting_agent.models.events import EventKind, NormalizedEvent

logger = logging.getLogger(LOGGER_NAME)


class ConnectionStatus(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    CLOSED = "closed"


TERMINAL_STATUSES = frozenset(
    {ConnectionStatus.DISCONNECTED, ConnectionStatus.FAILED, ConnectionStatus.CLOSED}
)


class SessionState(BaseModel):
    """Snapshot of one session, as observed by the rest of the application."""

    model_config = ConfigDict(frozen=True)

    status: ConnectionStatus = ConnectionStatus.IDLE
    error: Optional[str] = None
    listening: bool = False
    speaking: bool = False
    recording: bool = False
    transport_state: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    @property
    def is_connecting(self) -> bool:
        return self.status is ConnectionStatus.CONNECTING

    @property
    def can_connect(self) -> bool:
        """A fresh connect is allowed from idle and every terminal status."""
        return self.status is ConnectionStatus.IDLE or self.status in TERMINAL_STATUSES


class ActionType(str, Enum):
    CONNECT_REQUESTED = "connect_requested"
    CONNECT_FAILED = "connect_failed"
    TRANSPORT_STATE_CHANGED = "transport_state_changed"
    CHANNEL_CLOSED = "channel_closed"
    INTERRUPTED = "interrupted"
    RECORDING_STARTED = "recording_started"
    RECORDING_STOPPED = "recording_stopped"
    DISCONNECT_REQUESTED = "disconnect_requested"


class SessionAction(BaseModel):
    """Transition trigger originating from the transport or the caller."""

    model_config = ConfigDict(frozen=True)

    type: ActionType
    transport_state: Optional[str] = None
    error: Optional[str] = None


def _reduce_transport_state(state: SessionState, transport_state: str) -> SessionState:
    if transport_state == "connecting":
        return state.model_copy(
            update={"status": ConnectionStatus.CONNECTING, "transport_state": transport_state}
        )
    if transport_state == "connected":
        return state.model_copy(
            update={"status": ConnectionStatus.CONNECTED, "transport_state": transport_state}
        )
    if transport_state in ("failed", "disconnected"):
        return state.model_copy(
            update={
                "status": ConnectionStatus(transport_state),
                "transport_state": transport_state,
                "error": f"Connection {transport_state}",
                "listening": False,
                "speaking": False,
            }
        )
    if transport_state == "closed":
        return state.model_copy(
            update={
                "status": ConnectionStatus.CLOSED,
                "transport_state": transport_state,
                "listening": False,
                "speaking": False,
            }
        )
    # "new" and anything unknown only update the raw transport state
    return state.model_copy(update={"transport_state": transport_state})


def _reduce_action(state: SessionState, action: SessionAction) -> SessionState:
    if action.type is ActionType.CONNECT_REQUESTED:
        # A new attempt never inherits flags or errors from the previous one
        return SessionState(status=ConnectionStatus.CONNECTING)
    if action.type is ActionType.CONNECT_FAILED:
        return state.model_copy(
            update={
                "status": ConnectionStatus.FAILED,
                "error": action.error or "Failed to connect",
                "listening": False,
                "speaking": False,
                "recording": False,
            }
        )
    if action.type is ActionType.TRANSPORT_STATE_CHANGED:
        return _reduce_transport_state(state, action.transport_state or "")
    if action.type is ActionType.CHANNEL_CLOSED:
        return state.model_copy(update={"listening": False})
    if action.type is ActionType.INTERRUPTED:
        return state.model_copy(update={"speaking": False})
    if action.type is ActionType.RECORDING_STARTED:
        return state.model_copy(update={"recording": True})
    if action.type is ActionType.RECORDING_STOPPED:
        return state.model_copy(update={"recording": False})
    if action.type is ActionType.DISCONNECT_REQUESTED:
        if state.status is ConnectionStatus.IDLE:
            return SessionState()
        return SessionState(status=ConnectionStatus.CLOSED)
    return state


def _reduce_event(state: SessionState, event: NormalizedEvent) -> SessionState:
    if event.kind is EventKind.SPEECH_STARTED:
        return state.model_copy(update={"listening": True})
    if event.kind is EventKind.SPEECH_STOPPED:
        return state.model_copy(update={"listening": False})
    if event.kind in (EventKind.RESPONSE_CREATED, EventKind.RESPONSE_AUDIO_DELTA):
        if state.speaking:
            return state
        return state.model_copy(update={"speaking": True})
    if event.kind is EventKind.RESPONSE_DONE:
        return state.model_copy(update={"speaking": False})
    if event.kind is EventKind.ERROR:
        return state.model_copy(update={"error": event.error_message or "Unknown error"})
    return state


def reduce(state: SessionState, action: Union[SessionAction, NormalizedEvent]) -> SessionState:
    """
    Compute the next session state.

    Args:
        state: Current state
        action: A SessionAction or a NormalizedEvent

    Returns:
        The next state; the input state is never modified
    """
    if isinstance(action, NormalizedEvent):
        return _reduce_event(state, action)
    return _reduce_action(state, action)
