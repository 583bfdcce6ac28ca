"""
Signaling relay between session clients and the upstream realtime endpoint.

A client posts its raw SDP offer with an optional agent identifier. The relay
resolves the agent's persona, attaches it to the offer as the session
descriptor and forwards both to the upstream calls endpoint, returning the
upstream SDP answer unchanged. The upstream API key never leaves the server.
"""

import logging
from typing import Optional

from fastapi import Response
from fastapi.responses import JSONResponse

from meeting_agent.config.constants import (
    CONTENT_TYPE_SDP,
    DEFAULT_REALTIME_MODEL,
    LOGGER_NAME,
)
from meeting_agent.errors import SignalingError
from meeting_agent.models.agent import AgentStore
from meeting_agent.models.realtime_schemas import RemoteSessionConfig
from meeting_agent.models.signaling_schemas import ErrorResponse
from meeting_agent.services.realtime_calls_client import RealtimeCallsClient

logger = logging.getLogger(LOGGER_NAME)

SESSION_ERROR = "Failed to create realtime session"


def parse_agent_id(raw: Optional[str]) -> Optional[int]:
    """
    Parse the agentId query parameter.

    Returns:
        The identifier, or None when absent or not an integer
    """
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric agentId: {raw!r}")
        return None


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


async def handle_realtime_session(
    sdp_offer: str,
    agent_id: Optional[int],
    agent_store: AgentStore,
    calls_client: RealtimeCallsClient,
    model: str = DEFAULT_REALTIME_MODEL,
) -> Response:
    """
    Relay one SDP offer to the upstream endpoint.

    Args:
        sdp_offer: The client's SDP offer
        agent_id: Optional agent identifier selecting instructions and voice
        agent_store: Registry the agent is resolved against
        calls_client: Client for the upstream calls endpoint
        model: Realtime model placed in the session descriptor

    Returns:
        Response: The SDP answer as application/sdp, or a JSON error. An
            upstream failure keeps the upstream status code but never its body.
    """
    if not sdp_offer or not sdp_offer.strip():
        logger.warning("Rejecting realtime session request without SDP offer")
        return error_response(400, "SDP offer is required")

    agent = agent_store.resolve(agent_id)
    session = RemoteSessionConfig.for_agent(agent.instructions, agent.voice, model=model)
    logger.info(f"Creating realtime session for agent {agent.id} ({agent.name}) with voice {agent.voice}")

    try:
        answer = await calls_client.create_call(sdp_offer, session)
    except SignalingError as e:
        status_code = e.status_code or 500
        logger.error(f"Error creating realtime session: {e} (status {status_code})")
        return error_response(status_code, SESSION_ERROR)
    except Exception as e:
        logger.error(f"Unexpected error creating realtime session: {e}", exc_info=True)
        return error_response(500, SESSION_ERROR)

    return Response(content=answer, media_type=CONTENT_TYPE_SDP)
