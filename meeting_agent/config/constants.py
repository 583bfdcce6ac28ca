"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the application,
providing a centralized location for configuration values and making it easier to
maintain consistent naming throughout the codebase.
"""

# Logger name used throughout the application
LOGGER_NAME = "meeting_agent"

# Upstream realtime endpoint
DEFAULT_REALTIME_MODEL = "gpt-realtime"
DEFAULT_REALTIME_CALLS_URL = "https://api.openai.com/v1/realtime/calls"
DEFAULT_TRANSCRIPTION_MODEL = "gpt-4o-transcribe"

# Persona used when no agent configuration is supplied or found
DEFAULT_VOICE = "alloy"
DEFAULT_INSTRUCTIONS = (
    "You are a helpful AI assistant participating in a video call. "
    "Be conversational and natural. Always respond in English unless the user "
    "specifically asks you to speak another language."
)
DEFAULT_ASSISTANT_NAME = "AI Assistant"
USER_SPEAKER_NAME = "User"

# Transport negotiation
DATA_CHANNEL_LABEL = "oai-events"
DEFAULT_ICE_SERVERS = ["stun:stun.l.google.com:19302"]
ICE_GATHERING_TIMEOUT = 2.0  # seconds
SIGNALING_TIMEOUT = 30.0  # seconds

# Recorder retry policy
RECORDING_MAX_ATTEMPTS = 20
RECORDING_RETRY_INTERVAL = 0.5  # seconds
RECORDING_INITIAL_DELAY = 1.0  # seconds

# Local audio capture
SAMPLE_RATE = 48000
CHANNELS = 1
CHUNK = 960  # 20ms at 48kHz

# Background processing
CALL_ENDED_EVENT = "meeting/call.ended"

# Content types
CONTENT_TYPE_SDP = "application/sdp"
CONTENT_TYPE_TEXT = "text/plain"

# Fallback voice endpoint
VOICE_CHAT_MODEL = "gpt-audio"
VOICE_CHAT_TRANSCRIPTION_MODEL = "gpt-4o-mini-transcribe"
VOICE_CHAT_INSTRUCTIONS = "You are a helpful AI assistant participating in a video call."
