"""
Push-to-talk voice chat, the fallback to a persistent realtime session.

A client uploads one recorded utterance. The audio is transcribed, the
transcript is answered by an audio-capable chat model and the reply is
streamed back as server-sent events: the user transcript first, then
interleaved transcript and audio deltas, then a closing done (or error) frame.
"""

import base64
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import Response
from fastapi.responses import StreamingResponse
from openai import AsyncOpenAI, OpenAIError

from meeting_agent.config.constants import (
    LOGGER_NAME,
    VOICE_CHAT_INSTRUCTIONS,
    VOICE_CHAT_MODEL,
    VOICE_CHAT_TRANSCRIPTION_MODEL,
)
from meeting_agent.handlers.signaling_handlers import error_response
from meeting_agent.models.agent import AgentStore
from meeting_agent.models.signaling_schemas import VoiceChatFrame, VoiceChatRequest

logger = logging.getLogger(LOGGER_NAME)

VOICE_CHAT_ERROR = "Failed to process voice chat"

# Leading bytes of the containers browsers and the console client record to
AUDIO_SIGNATURES = [
    (b"RIFF", "audio.wav"),
    (b"OggS", "audio.ogg"),
    (b"\x1a\x45\xdf\xa3", "audio.webm"),
    (b"ID3", "audio.mp3"),
    (b"\xff\xfb", "audio.mp3"),
    (b"fLaC", "audio.flac"),
]


def guess_audio_filename(data: bytes) -> str:
    """Name the upload after its container so the transcriber can decode it."""
    for signature, filename in AUDIO_SIGNATURES:
        if data.startswith(signature):
            return filename
    if data[4:8] == b"ftyp":
        return "audio.mp4"
    return "audio.webm"


async def transcribe_audio(client: AsyncOpenAI, audio: bytes) -> str:
    filename = guess_audio_filename(audio)
    result = await client.audio.transcriptions.create(
        model=VOICE_CHAT_TRANSCRIPTION_MODEL,
        file=(filename, audio),
    )
    logger.info(f"Transcribed {len(audio)} bytes of {filename}: {result.text[:80]}")
    return result.text


def _delta_field(delta: Any, name: str) -> Optional[Any]:
    # Audio deltas are not part of the SDK's typed delta model
    if delta is None:
        return None
    if isinstance(delta, dict):
        return delta.get(name)
    return getattr(delta, name, None)


async def stream_voice_reply(
    client: AsyncOpenAI,
    system_prompt: str,
    user_transcript: str,
    voice: str,
) -> AsyncIterator[str]:
    """
    Yield the SSE frames of one voice chat reply.

    Errors after the stream has started are reported as a final error frame.
    """
    yield VoiceChatFrame(type="user_transcript", data=user_transcript).to_sse()

    assistant_transcript = ""
    try:
        stream = await client.chat.completions.create(
            model=VOICE_CHAT_MODEL,
            modalities=["text", "audio"],
            audio={"voice": voice, "format": "pcm16"},
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_transcript},
            ],
            stream=True,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            audio = _delta_field(chunk.choices[0].delta, "audio")
            if not audio:
                continue

            transcript = _delta_field(audio, "transcript")
            if transcript:
                assistant_transcript += transcript
                yield VoiceChatFrame(type="transcript", data=transcript).to_sse()

            data = _delta_field(audio, "data")
            if data:
                yield VoiceChatFrame(type="audio", data=data).to_sse()
    except OpenAIError as e:
        logger.error(f"Error streaming voice chat reply: {e}")
        yield VoiceChatFrame(type="error", error=VOICE_CHAT_ERROR).to_sse()
        return

    logger.info(f"Voice chat reply complete: {assistant_transcript[:80]}")
    yield VoiceChatFrame(
        type="done", transcript=assistant_transcript, userTranscript=user_transcript
    ).to_sse()


async def handle_voice_chat(
    request: VoiceChatRequest,
    agent_store: AgentStore,
    client: Optional[AsyncOpenAI],
) -> Response:
    """
    Answer one recorded utterance.

    Args:
        request: Base64 audio, optional agent identifier and voice
        agent_store: Registry the agent instructions are read from
        client: OpenAI client, None when no API key is configured

    Returns:
        Response: An SSE stream, or a JSON error before streaming starts
    """
    if not request.audio:
        return error_response(400, "Audio data (base64) is required")
    if client is None:
        logger.error("OPENAI_API_KEY environment variable not set")
        return error_response(500, VOICE_CHAT_ERROR)

    agent = agent_store.get_agent(request.agentId)
    system_prompt = agent.instructions if agent else VOICE_CHAT_INSTRUCTIONS

    try:
        user_transcript = await transcribe_audio(client, base64.b64decode(request.audio))
    except OpenAIError as e:
        logger.error(f"Error transcribing voice chat audio: {e}")
        return error_response(500, VOICE_CHAT_ERROR)

    return StreamingResponse(
        stream_voice_reply(client, system_prompt, user_transcript, request.voice),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
