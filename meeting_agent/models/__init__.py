"""
Models module for data structures and state management in the realtime meeting agent.

Key components:
- realtime_schemas: Pydantic models for the control messages sent over the data
  channel and the server events received on it, plus the session descriptor
  attached to an SDP offer.
- signaling_schemas: Request and response bodies of the service endpoints.
- events: The EventKind vocabulary and the table translating raw server event
  types into it.
- transcript: TranscriptAssembler, building ordered turns from event deltas.
- session_state: The immutable SessionState and its pure reducer.
- agent: Agent configurations and the store the signaling relay reads them from.

Usage examples:
```python
from meeting_agent.models.session_state import SessionAction, ActionType, SessionState, reduce

state = reduce(SessionState(), SessionAction(type=ActionType.CONNECT_REQUESTED))
assert state.is_connecting
```
"""

from meeting_agent.models.events import EventKind, NormalizedEvent
from meeting_agent.models.session_state import (
    ActionType,
    ConnectionStatus,
    SessionAction,
    SessionState,
    reduce,
)
from meeting_agent.models.transcript import TranscriptAssembler, Turn, TurnRole
