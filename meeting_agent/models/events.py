"""
Normalized realtime events.

The upstream protocol has shipped several names for the same transition
across revisions (for example response.audio_transcript.delta and
response.output_audio_transcript.delta). RAW_EVENT_KINDS maps every raw type
string the client understands onto one EventKind, so that protocol drift is
isolated to this table.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict


class EventKind(str, Enum):
    """Closed set of event kinds the session reacts to."""
    SPEECH_STARTED = "speech_started"
    SPEECH_STOPPED = "speech_stopped"
    USER_TRANSCRIPT_COMPLETED = "user_transcript_completed"
    USER_ITEM_CREATED = "user_item_created"
    ASSISTANT_ITEM_ADDED = "assistant_item_added"
    ASSISTANT_DELTA = "assistant_delta"
    ASSISTANT_DONE = "assistant_done"
    ASSISTANT_ITEM_DONE = "assistant_item_done"
    RESPONSE_CREATED = "response_created"
    RESPONSE_AUDIO_DELTA = "response_audio_delta"
    RESPONSE_DONE = "response_done"
    ERROR = "error"
    INFORMATIONAL = "informational"


RAW_EVENT_KINDS: Dict[str, EventKind] = {
    "input_audio_buffer.speech_started": EventKind.SPEECH_STARTED,
    "input_audio_buffer.speech_stopped": EventKind.SPEECH_STOPPED,
    "conversation.item.input_audio_transcription.completed": EventKind.USER_TRANSCRIPT_COMPLETED,
    "conversation.item.created": EventKind.USER_ITEM_CREATED,
    "conversation.item.added": EventKind.USER_ITEM_CREATED,
    "response.output_item.added": EventKind.ASSISTANT_ITEM_ADDED,
    "response.audio_transcript.delta": EventKind.ASSISTANT_DELTA,
    "response.output_audio_transcript.delta": EventKind.ASSISTANT_DELTA,
    "response.text.delta": EventKind.ASSISTANT_DELTA,
    "response.output_text.delta": EventKind.ASSISTANT_DELTA,
    "response.audio_transcript.done": EventKind.ASSISTANT_DONE,
    "response.output_audio_transcript.done": EventKind.ASSISTANT_DONE,
    "response.text.done": EventKind.ASSISTANT_DONE,
    "response.output_text.done": EventKind.ASSISTANT_DONE,
    "response.output_item.done": EventKind.ASSISTANT_ITEM_DONE,
    "response.created": EventKind.RESPONSE_CREATED,
    "response.audio.delta": EventKind.RESPONSE_AUDIO_DELTA,
    "response.output_audio.delta": EventKind.RESPONSE_AUDIO_DELTA,
    "response.done": EventKind.RESPONSE_DONE,
    "error": EventKind.ERROR,
    "session.created": EventKind.INFORMATIONAL,
    "session.updated": EventKind.INFORMATIONAL,
    "input_audio_buffer.committed": EventKind.INFORMATIONAL,
    "rate_limits.updated": EventKind.INFORMATIONAL,
    "response.audio.done": EventKind.INFORMATIONAL,
    "response.output_audio.done": EventKind.INFORMATIONAL,
}


class NormalizedEvent(BaseModel):
    """Version-independent representation of one server event."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    raw_type: str
    text: Optional[str] = None
    role: Optional[str] = None
    error_message: Optional[str] = None
