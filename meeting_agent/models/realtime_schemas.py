"""
Pydantic models for the OpenAI Realtime API message structures.

This module provides type-safe models for the JSON messages exchanged over the
realtime data channel, the session descriptor sent during call negotiation,
and the raw server event envelope consumed by the event normalizer.
"""

import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from meeting_agent.config.constants import (
    DEFAULT_REALTIME_MODEL,
    DEFAULT_TRANSCRIPTION_MODEL,
)


class RealtimeBaseMessage(BaseModel):
    """Base model for Realtime API messages."""
    type: str

    def to_json(self) -> str:
        """Serialize the message for sending over the data channel."""
        return json.dumps(self.model_dump(exclude_none=True))


# Session descriptor sent with the SDP offer

class AudioOutputConfig(BaseModel):
    voice: str


class SessionAudioConfig(BaseModel):
    output: AudioOutputConfig


class RemoteSessionConfig(BaseModel):
    """
    Session descriptor accepted by the calls endpoint at negotiation time.

    Only type, model, instructions and output voice are accepted here; turn
    detection and transcription must be sent as a session.update once the
    data channel is open.
    """
    type: Literal["realtime"] = "realtime"
    model: str = DEFAULT_REALTIME_MODEL
    instructions: str
    audio: SessionAudioConfig

    @classmethod
    def for_agent(cls, instructions: str, voice: str, model: str = DEFAULT_REALTIME_MODEL):
        return cls(
            model=model,
            instructions=instructions,
            audio=SessionAudioConfig(output=AudioOutputConfig(voice=voice)),
        )


# Outbound client messages

class TranscriptionConfig(BaseModel):
    model: str = DEFAULT_TRANSCRIPTION_MODEL


class AudioInputConfig(BaseModel):
    transcription: TranscriptionConfig = Field(default_factory=TranscriptionConfig)


class SessionInputAudio(BaseModel):
    input: AudioInputConfig = Field(default_factory=AudioInputConfig)


class SessionUpdatePayload(BaseModel):
    type: Literal["realtime"] = "realtime"
    audio: SessionInputAudio = Field(default_factory=SessionInputAudio)


class SessionUpdateMessage(RealtimeBaseMessage):
    """session.update enabling input audio transcription."""
    type: Literal["session.update"] = "session.update"
    session: SessionUpdatePayload = Field(default_factory=SessionUpdatePayload)

    @classmethod
    def enable_transcription(cls, model: str = DEFAULT_TRANSCRIPTION_MODEL):
        return cls(
            session=SessionUpdatePayload(
                audio=SessionInputAudio(
                    input=AudioInputConfig(transcription=TranscriptionConfig(model=model))
                )
            )
        )


class InputTextContent(BaseModel):
    type: Literal["input_text"] = "input_text"
    text: str


class ConversationItem(BaseModel):
    type: Literal["message"] = "message"
    role: Literal["user"] = "user"
    content: List[InputTextContent]


class ConversationItemCreateMessage(RealtimeBaseMessage):
    """Injects user text into the conversation."""
    type: Literal["conversation.item.create"] = "conversation.item.create"
    item: ConversationItem

    @classmethod
    def user_text(cls, text: str):
        return cls(item=ConversationItem(content=[InputTextContent(text=text)]))


class ResponseCreateMessage(RealtimeBaseMessage):
    type: Literal["response.create"] = "response.create"


class ResponseCancelMessage(RealtimeBaseMessage):
    type: Literal["response.cancel"] = "response.cancel"


# Inbound server events

class RealtimeServerEvent(RealtimeBaseMessage):
    """
    Raw server event envelope.

    Only the fields the client consumes are declared; everything else the
    server sends is kept as extra data so that newer protocol revisions
    still parse.
    """
    model_config = ConfigDict(extra="allow")

    event_id: Optional[str] = None
    delta: Optional[str] = None
    transcript: Optional[str] = None
    text: Optional[str] = None
    item: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None

    @property
    def item_role(self) -> Optional[str]:
        return (self.item or {}).get("role")

    def item_text(self) -> Optional[str]:
        """Return the first text part of a conversation item, if any."""
        for part in (self.item or {}).get("content") or []:
            if isinstance(part, dict) and part.get("type") in ("input_text", "text"):
                if part.get("text"):
                    return part["text"]
        return None

    @property
    def error_message(self) -> str:
        return (self.error or {}).get("message") or "Unknown error"
