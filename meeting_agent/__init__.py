"""
Realtime Meeting Agent - WebRTC voice sessions with OpenAI Realtime agents

This application lets a user hold a spoken conversation with a configurable AI
agent over a WebRTC session negotiated through a server-side signaling relay,
assembles a live transcript of the conversation, records both sides of it and
hands the finished transcript off to background processing.

Architecture Overview:
- FastAPI server relaying SDP offers to the upstream realtime calls endpoint
  with the agent's persona attached, so the API key never leaves the server
- aiortc-based session client with a control data channel for events
- Event normalization into a transcript and a pure session state reducer
- Mixed recording of the local and remote audio tracks
- Durable task queue trigger for post-call processing

Key Components:
- config: Application-wide constants and logging setup
- handlers: Data channel event handling and the HTTP endpoint handlers
- models: Wire schemas, transcript and session state models
- services: HTTP clients for the upstream endpoint, the relay and the task queue
- session: Local media, transport negotiation, recording and the session facade

Getting Started:
1. Set up environment variables:
   - OPENAI_API_KEY: Your OpenAI API key
   - TASK_QUEUE_EVENT_URL: Event endpoint of the background task queue
   - AGENTS_FILE: JSON file with agent configurations (optional)
   - PORT / HOST / LOG_LEVEL: Server settings

2. Start the server:
   ```bash
   python run.py
   ```

3. Talk to an agent from the console:
   ```bash
   python -m meeting_agent.client --agent-id 1 --meeting-id 42
   ```
"""
