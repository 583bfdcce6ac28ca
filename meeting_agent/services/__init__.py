"""
Services module for external HTTP integrations in the realtime meeting agent.

Key components:
- realtime_calls_client: Creates upstream realtime calls from an SDP offer and
  a session descriptor.
- agent_service_client: Used by sessions to exchange SDP with the signaling
  relay and to submit finished transcripts.
- task_queue: Publishes events to the durable background task queue.

Usage examples:
```python
from meeting_agent.services.agent_service_client import AgentServiceClient

client = AgentServiceClient("http://localhost:8000")
answer_sdp = await client.exchange_offer(offer_sdp, agent_id=1)
```
"""

# Services module initialization
