"""
FastAPI server for the realtime meeting agent.

This module initializes the FastAPI application that sits between session
clients and the upstream realtime endpoint. It relays SDP offers with the
selected agent's persona attached, triggers background processing of
finished calls and serves the push-to-talk voice chat fallback.

The clients the routes use are built from environment variables by
build_services() and kept on app.state, where tests replace them.
"""

import os
from pathlib import Path
from typing import Optional

import dotenv
from fastapi import BackgroundTasks, FastAPI, Request
from openai import AsyncOpenAI

from meeting_agent.config.constants import (
    DEFAULT_REALTIME_CALLS_URL,
    DEFAULT_REALTIME_MODEL,
)
from meeting_agent.config.logging_config import configure_logging
from meeting_agent.handlers.processing_handlers import handle_process_meeting
from meeting_agent.handlers.signaling_handlers import handle_realtime_session, parse_agent_id
from meeting_agent.handlers.voice_chat_handlers import handle_voice_chat
from meeting_agent.models.agent import AgentStore
from meeting_agent.models.signaling_schemas import (
    ProcessMeetingRequest,
    ProcessMeetingResponse,
    VoiceChatRequest,
)
from meeting_agent.services.realtime_calls_client import RealtimeCallsClient
from meeting_agent.services.task_queue import TaskQueueClient

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)

# Configure logging
logger = configure_logging()

# Get configuration from environment variables
PORT = int(os.getenv("PORT", "8000"))
HOST = os.getenv("HOST", "0.0.0.0")

# Create FastAPI application
app = FastAPI(
    title="Realtime Meeting Agent",
    description="Signaling relay and post-call processing for realtime voice agents",
    version="1.0.0",
)


def build_services(target: FastAPI) -> None:
    """Create the service clients from the environment and attach them to the app."""
    api_key = os.getenv("OPENAI_API_KEY")
    agents_file = os.getenv("AGENTS_FILE")

    target.state.realtime_model = os.getenv("OPENAI_REALTIME_MODEL", DEFAULT_REALTIME_MODEL)
    target.state.agent_store = AgentStore.from_file(agents_file) if agents_file else AgentStore()
    target.state.calls_client = RealtimeCallsClient(
        api_key, url=os.getenv("OPENAI_REALTIME_CALLS_URL", DEFAULT_REALTIME_CALLS_URL)
    )
    target.state.task_queue = TaskQueueClient(os.getenv("TASK_QUEUE_EVENT_URL"))
    # AsyncOpenAI refuses to construct without a key
    target.state.openai_client = AsyncOpenAI(api_key=api_key) if api_key else None

    if not api_key:
        logger.warning("OPENAI_API_KEY not set, realtime sessions and voice chat will fail")
    if not target.state.task_queue.configured:
        logger.warning("TASK_QUEUE_EVENT_URL not set, finished calls will not be processed")


build_services(app)


@app.post("/api/realtime/session")
async def create_realtime_session(request: Request, agentId: Optional[str] = None):
    """Relay an SDP offer (application/sdp or text/plain body) to the realtime endpoint.

    Returns:
        The upstream SDP answer as application/sdp, or {"error": ...} with the
        upstream status code on failure.
    """
    body = await request.body()
    sdp_offer = body.decode("utf-8", errors="replace")
    return await handle_realtime_session(
        sdp_offer,
        parse_agent_id(agentId),
        request.app.state.agent_store,
        request.app.state.calls_client,
        model=request.app.state.realtime_model,
    )


@app.post("/api/meetings/{meeting_id}/process", response_model=ProcessMeetingResponse)
async def process_meeting(
    meeting_id: int,
    body: ProcessMeetingRequest,
    background_tasks: BackgroundTasks,
    request: Request,
):
    """Trigger background processing of a finished call's transcript."""
    return handle_process_meeting(
        meeting_id, body, background_tasks, request.app.state.task_queue
    )


@app.post("/api/voice-chat")
async def voice_chat(body: VoiceChatRequest, request: Request):
    """Transcribe one utterance and stream the spoken reply as server-sent events."""
    return await handle_voice_chat(
        body, request.app.state.agent_store, request.app.state.openai_client
    )


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status information indicating the server is operational.
    """
    state = request.app.state
    return {
        "status": "healthy",
        "openai_api_key_configured": bool(state.calls_client.api_key),
        "task_queue_configured": state.task_queue.configured,
        "agents_loaded": len(state.agent_store.agents),
        "realtime_model": state.realtime_model,
    }


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API."""
    return {
        "name": "Realtime Meeting Agent",
        "description": "Signaling relay and post-call processing for realtime voice agents",
        "version": "1.0.0",
        "endpoints": {
            "/api/realtime/session": "SDP offer/answer relay to the realtime endpoint",
            "/api/meetings/{meeting_id}/process": "Background processing trigger",
            "/api/voice-chat": "Push-to-talk voice chat fallback (SSE)",
            "/health": "Health check endpoint",
        },
    }


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on http://{HOST}:{PORT}")
    uvicorn.run(app, host=HOST, port=PORT, http="h11")
