"""
Unit tests for the session state reducer.

The reducer is pure, so these tests never touch a transport.
"""

import pytest

from meeting_agent.models.events import EventKind, NormalizedEvent
from meeting_agent.models.session_state import (
    ActionType,
    ConnectionStatus,
    SessionAction,
    SessionState,
    reduce,
)


def action(action_type, **kwargs):
    return SessionAction(type=action_type, **kwargs)


def transport(state_name):
    return action(ActionType.TRANSPORT_STATE_CHANGED, transport_state=state_name)


def event(kind, **kwargs):
    return NormalizedEvent(kind=kind, raw_type=kind.value, **kwargs)


class TestConnectionLifecycle:
    def test_initial_state(self):
        state = SessionState()
        assert state.status is ConnectionStatus.IDLE
        assert state.error is None
        assert not (state.listening or state.speaking or state.recording)
        assert state.can_connect

    def test_connect_requested_resets_everything(self):
        dirty = SessionState(
            status=ConnectionStatus.FAILED,
            error="Connection failed",
            listening=True,
            speaking=True,
            recording=True,
            transport_state="failed",
        )

        state = reduce(dirty, action(ActionType.CONNECT_REQUESTED))

        assert state == SessionState(status=ConnectionStatus.CONNECTING)
        assert state.is_connecting

    def test_transport_progress(self):
        state = reduce(SessionState(), action(ActionType.CONNECT_REQUESTED))
        state = reduce(state, transport("new"))
        assert state.status is ConnectionStatus.CONNECTING
        assert state.transport_state == "new"

        state = reduce(state, transport("connected"))
        assert state.is_connected
        assert not state.can_connect

    @pytest.mark.parametrize("name", ["failed", "disconnected"])
    def test_transport_loss_sets_error(self, name):
        connected = SessionState(status=ConnectionStatus.CONNECTED, listening=True, speaking=True)

        state = reduce(connected, transport(name))

        assert state.status is ConnectionStatus(name)
        assert state.error == f"Connection {name}"
        assert not state.listening
        assert not state.speaking
        assert state.can_connect

    def test_transport_closed(self):
        state = reduce(SessionState(status=ConnectionStatus.CONNECTED, speaking=True), transport("closed"))
        assert state.status is ConnectionStatus.CLOSED
        assert state.error is None
        assert not state.speaking

    def test_connect_failed(self):
        state = reduce(
            SessionState(status=ConnectionStatus.CONNECTING, recording=True),
            action(ActionType.CONNECT_FAILED, error="Microphone unavailable"),
        )
        assert state.status is ConnectionStatus.FAILED
        assert state.error == "Microphone unavailable"
        assert not state.recording

    def test_disconnect_from_connected_closes(self):
        state = reduce(
            SessionState(status=ConnectionStatus.CONNECTED, recording=True, error="old"),
            action(ActionType.DISCONNECT_REQUESTED),
        )
        assert state == SessionState(status=ConnectionStatus.CLOSED)

    def test_disconnect_from_idle_stays_idle(self):
        state = reduce(SessionState(), action(ActionType.DISCONNECT_REQUESTED))
        assert state.status is ConnectionStatus.IDLE

    def test_channel_closed_stops_listening(self):
        state = reduce(
            SessionState(status=ConnectionStatus.CONNECTED, listening=True),
            action(ActionType.CHANNEL_CLOSED),
        )
        assert state.status is ConnectionStatus.CONNECTED
        assert not state.listening


class TestUpstreamEvents:
    def test_speech_drives_listening(self):
        state = reduce(SessionState(), event(EventKind.SPEECH_STARTED))
        assert state.listening
        state = reduce(state, event(EventKind.SPEECH_STOPPED))
        assert not state.listening

    def test_response_drives_speaking(self):
        state = reduce(SessionState(), event(EventKind.RESPONSE_CREATED))
        assert state.speaking
        again = reduce(state, event(EventKind.RESPONSE_AUDIO_DELTA))
        assert again is state
        state = reduce(state, event(EventKind.RESPONSE_DONE))
        assert not state.speaking

    def test_interrupt_stops_speaking(self):
        state = reduce(SessionState(speaking=True), action(ActionType.INTERRUPTED))
        assert not state.speaking

    def test_error_event_keeps_connection(self):
        state = reduce(
            SessionState(status=ConnectionStatus.CONNECTED),
            event(EventKind.ERROR, error_message="Rate limited"),
        )
        assert state.status is ConnectionStatus.CONNECTED
        assert state.error == "Rate limited"

    def test_transcript_events_do_not_change_state(self):
        state = SessionState(status=ConnectionStatus.CONNECTED)
        for kind in (EventKind.ASSISTANT_DELTA, EventKind.USER_TRANSCRIPT_COMPLETED, EventKind.INFORMATIONAL):
            assert reduce(state, event(kind, text="x")) is state

    def test_recording_flags(self):
        state = reduce(SessionState(), action(ActionType.RECORDING_STARTED))
        assert state.recording
        state = reduce(state, action(ActionType.RECORDING_STOPPED))
        assert not state.recording


def test_input_state_is_not_mutated():
    original = SessionState(status=ConnectionStatus.CONNECTED, listening=True)
    snapshot = original.model_dump()

    reduce(original, transport("failed"))
    reduce(original, event(EventKind.SPEECH_STOPPED))
    reduce(original, action(ActionType.DISCONNECT_REQUESTED))

    assert original.model_dump() == snapshot
