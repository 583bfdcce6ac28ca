"""
Handlers module for the realtime meeting agent.

Key components:
- event_normalizer: Decodes data channel messages into NormalizedEvents and
  dispatches them to registered handlers.
- transcript_handlers: Applies normalized events to a TranscriptAssembler.
- signaling_handlers: Relays SDP offers to the upstream realtime endpoint with
  the selected agent's persona attached.
- processing_handlers: Publishes the call-ended event for background processing.
- voice_chat_handlers: Push-to-talk voice chat streamed as server-sent events.
"""

# Handlers module initialization
