"""
Session module for realtime voice conversations over WebRTC.

This module contains everything a client needs to hold one conversation with
a realtime agent: local audio devices, transport negotiation, mixed recording
and the RealtimeSession facade tying them to the transcript and state models.

Key components:
- media: MicrophoneStreamTrack for local capture and RemoteAudioPlayer for playback
- negotiator: TransportNegotiator, owning the peer connection and the control
  data channel and exchanging the SDP offer through the signaling relay
- recorder: MixedRecorder, recording both sides of the conversation as one
  track, with a bounded retry policy for starting it
- realtime_session: RealtimeSession, the operations and observers a caller
  drives a conversation with

Usage examples:
```python
from meeting_agent.services.agent_service_client import AgentServiceClient
from meeting_agent.session.realtime_session import RealtimeSession

session = RealtimeSession(AgentServiceClient("http://localhost:8000"), agent_id=1, meeting_id=42)
session.on_message = lambda turn: print(turn.role, turn.content)

await session.connect()
await session.start_recording_with_retry()
...
await session.end_conversation()
```
"""
