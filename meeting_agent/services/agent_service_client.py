"""
Client for the meeting agent service endpoints used by a realtime session.

A session talks to the service twice: once to exchange its SDP offer through
the signaling relay, and once at the end of the conversation to hand the
transcript off to background processing.
"""

import logging
from typing import List, Optional

import httpx

from meeting_agent.config.constants import (
    CONTENT_TYPE_SDP,
    LOGGER_NAME,
    SIGNALING_TIMEOUT,
)
from meeting_agent.errors import SignalingError
from meeting_agent.models.signaling_schemas import (
    ProcessMeetingRequest,
    ProcessMeetingResponse,
    TranscriptRecord,
)

logger = logging.getLogger(LOGGER_NAME)


class AgentServiceClient:
    """
    HTTP client for the signaling relay and the processing trigger.

    Instances are created by the owner of a session and passed in; there is
    no shared module-level client.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = SIGNALING_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Root URL of the meeting agent service, e.g. http://localhost:8000
            timeout: Timeout in seconds for each request
            transport: Optional httpx transport, used by tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    async def exchange_offer(self, sdp_offer: str, agent_id: Optional[int] = None) -> str:
        """
        Send a local SDP offer to the signaling relay.

        Args:
            sdp_offer: The finalized local description
            agent_id: Optional agent configuration identifier

        Returns:
            str: The remote SDP answer

        Raises:
            SignalingError: If the relay is unreachable or returns a non-success status
        """
        params = {"agentId": str(agent_id)} if agent_id is not None else None
        logger.info("Sending SDP offer to signaling relay")
        try:
            async with self._client() as client:
                response = await client.post(
                    "/api/realtime/session",
                    params=params,
                    content=sdp_offer.encode("utf-8"),
                    headers={"Content-Type": CONTENT_TYPE_SDP},
                )
        except httpx.HTTPError as e:
            logger.error(f"Signaling relay unreachable: {e}")
            raise SignalingError(f"Signaling relay unreachable: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Session creation failed: {response.status_code} {response.text}")
            raise SignalingError(
                f"Failed to create session: {response.status_code}",
                status_code=response.status_code,
            )

        logger.info("Received SDP answer from signaling relay")
        return response.text

    async def submit_transcript(
        self, meeting_id: int, records: List[TranscriptRecord]
    ) -> ProcessMeetingResponse:
        """
        Hand a finished conversation's transcript off to background processing.

        Args:
            meeting_id: The meeting the conversation belongs to
            records: Ordered transcript records

        Returns:
            ProcessMeetingResponse: The service acknowledgement
        """
        body = ProcessMeetingRequest(transcriptData=records)
        async with self._client() as client:
            response = await client.post(
                f"/api/meetings/{meeting_id}/process", json=body.model_dump()
            )
        response.raise_for_status()
        logger.info(f"Submitted {len(records)} transcript records for meeting {meeting_id}")
        return ProcessMeetingResponse(**response.json())
