"""
Event sender for the durable background task queue.

Post-call processing (saving transcripts, generating summaries, marking the
meeting completed) runs as queued functions subscribed to named events. The
service only publishes the event to the queue's HTTP event API; it neither
waits for nor observes the jobs it triggers.
"""

import logging
from typing import Optional

import httpx

from meeting_agent.config.constants import LOGGER_NAME
from meeting_agent.models.signaling_schemas import TaskQueueEvent

logger = logging.getLogger(LOGGER_NAME)

EVENT_TIMEOUT = 10.0  # seconds


class TaskQueueClient:
    """
    Publishes events to the task queue event endpoint.
    """

    def __init__(
        self,
        event_url: Optional[str],
        timeout: float = EVENT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.event_url = event_url
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.event_url)

    async def send(self, event: TaskQueueEvent) -> bool:
        """
        Publish one event.

        Failures are logged and reported through the return value; this is
        called from fire-and-forget background tasks where an exception has
        no one to reach.

        Returns:
            bool: True if the queue accepted the event
        """
        if not self.event_url:
            logger.warning(f"TASK_QUEUE_EVENT_URL not set, dropping event {event.name}")
            return False
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.event_url, json=event.model_dump())
            if response.status_code >= 400:
                logger.error(
                    f"Task queue rejected event {event.name}: HTTP {response.status_code}: {response.text[:160]}"
                )
                return False
        except httpx.HTTPError as e:
            logger.error(f"Failed to send event {event.name} to task queue: {e}")
            return False

        logger.info(
            f"Sent event {event.name} for meeting {event.data.meetingId} "
            f"with {len(event.data.transcriptData)} transcript records"
        )
        return True
