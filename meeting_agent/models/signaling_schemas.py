"""
Pydantic models for the HTTP payloads of the meeting agent service.

This module defines structured data models for the request and response bodies
of the service endpoints that sit around the realtime session: the transcript
hand-off to background processing, the task-queue event envelope and the
frames of the non-streaming voice-chat fallback.
"""

import base64
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class ErrorResponse(BaseModel):
    """Error body returned instead of an upstream response body."""

    error: str = Field(..., description="Human readable error description")


# Background processing

class TranscriptRecord(BaseModel):
    """One finalized turn handed off for post-call processing."""

    speaker: str = Field(..., description="Speaker display name")
    content: str = Field(..., description="Turn text")
    timestamp: int = Field(..., description="Turn creation time in epoch milliseconds")

    @field_validator("content")
    def validate_content(cls, v):
        """Validate that content is not blank."""
        if not v.strip():
            raise ValueError("Transcript content cannot be empty")
        return v


class ProcessMeetingRequest(BaseModel):
    """Body of POST /api/meetings/{id}/process."""

    transcriptData: List[TranscriptRecord] = Field(
        default_factory=list, description="Ordered transcript records"
    )


class ProcessMeetingResponse(BaseModel):
    success: bool
    message: str


class CallEndedData(BaseModel):
    meetingId: int
    transcriptData: List[TranscriptRecord]


class TaskQueueEvent(BaseModel):
    """Event envelope sent to the durable task queue."""

    name: str = Field(..., description="Event name the queued functions subscribe to")
    data: CallEndedData


# Non-streaming voice chat fallback

class VoiceChatRequest(BaseModel):
    """Body of POST /api/voice-chat."""

    audio: Optional[str] = Field(None, description="Base64-encoded recorded audio")
    agentId: Optional[int] = Field(None, description="Agent configuration identifier")
    voice: str = Field("alloy", description="Output voice")

    @field_validator("audio")
    def validate_audio(cls, v):
        """Validate that audio is valid base64 if present."""
        if v:
            try:
                base64.b64decode(v, validate=True)
            except Exception:
                raise ValueError("Invalid base64 encoded audio data")
        return v


class VoiceChatFrame(BaseModel):
    """One server-sent event frame of the voice chat stream."""

    type: Literal["user_transcript", "transcript", "audio", "done", "error"]
    data: Optional[str] = None
    transcript: Optional[str] = None
    userTranscript: Optional[str] = None
    error: Optional[str] = None

    def to_sse(self) -> str:
        return f"data: {self.model_dump_json(exclude_none=True)}\n\n"
