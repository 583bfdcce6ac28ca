"""
Client for the upstream realtime calls endpoint.

The signaling relay uses this client to forward a browser or console client's
SDP offer, together with the agent's session descriptor, to the upstream
conversational endpoint and to obtain the SDP answer.
"""

import logging
import time
from typing import Optional

import httpx

from meeting_agent.config.constants import (
    DEFAULT_REALTIME_CALLS_URL,
    LOGGER_NAME,
    SIGNALING_TIMEOUT,
)
from meeting_agent.errors import SignalingError
from meeting_agent.models.realtime_schemas import RemoteSessionConfig

logger = logging.getLogger(LOGGER_NAME)


class RealtimeCallsClient:
    """
    Creates realtime calls by exchanging an SDP offer for an answer.
    """

    def __init__(
        self,
        api_key: Optional[str],
        url: str = DEFAULT_REALTIME_CALLS_URL,
        timeout: float = SIGNALING_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self._transport = transport
        logger.info(f"RealtimeCallsClient initialized for: {url}")

    async def create_call(self, sdp_offer: str, session: RemoteSessionConfig) -> str:
        """
        Create a call on the upstream endpoint.

        Args:
            sdp_offer: The client's SDP offer, forwarded unmodified
            session: The session descriptor accepted at negotiation time

        Returns:
            str: The upstream SDP answer, unmodified

        Raises:
            SignalingError: With the upstream status code on a non-success
                response, or without one on a network failure
        """
        if not self.api_key:
            logger.error("OPENAI_API_KEY environment variable not set")
            raise SignalingError("OPENAI_API_KEY environment variable not set")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        files = {
            "sdp": (None, sdp_offer),
            "session": (None, session.model_dump_json()),
        }

        logger.info(f"Creating realtime call with model: {session.model}")
        logger.debug(f"Using headers: Authorization: Bearer [API_KEY_HIDDEN]")
        request_start = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, headers=headers, files=files)
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach realtime calls endpoint: {e}")
            raise SignalingError(f"Failed to reach realtime calls endpoint: {e}") from e

        request_time = time.time() - request_start
        if response.status_code >= 400:
            # The upstream body is logged but never returned to callers
            logger.error(
                f"Realtime calls endpoint returned {response.status_code}: {response.text[:500]}"
            )
            raise SignalingError(
                "Failed to create realtime session", status_code=response.status_code
            )

        logger.info(f"Realtime call created in {request_time:.2f} seconds")
        return response.text
