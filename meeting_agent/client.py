"""
Console client for a realtime meeting agent session.

Captures the microphone, plays the agent's voice, prints the transcript as it
forms and, when the conversation ends, hands the transcript off for
processing and saves the mixed recording locally.

Usage:
    python -m meeting_agent.client [--server URL] [--agent-id ID] [--meeting-id ID] [--time SECONDS]
"""

import argparse
import asyncio
import os
import uuid
from pathlib import Path

import dotenv

from meeting_agent.config.constants import DEFAULT_ASSISTANT_NAME, DEFAULT_TRANSCRIPTION_MODEL
from meeting_agent.config.logging_config import configure_logging
from meeting_agent.models.session_state import ConnectionStatus
from meeting_agent.services.agent_service_client import AgentServiceClient
from meeting_agent.session.media import RemoteAudioPlayer
from meeting_agent.session.realtime_session import RealtimeSession

logger = configure_logging()

RECORDINGS_DIR = Path("local_recordings")
RECORDING_EXTENSIONS = {
    "audio/ogg;codecs=opus": "ogg",
    "audio/mp4": "m4a",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
}


def print_turn(turn):
    speaker = "You" if turn.role.value == "user" else "Agent"
    if turn.final:
        print(f"[{speaker}] {turn.content}")
    else:
        print(f"[{speaker}] ...")


async def run_client(server_url, agent_id, meeting_id, duration, assistant_name, record):
    client_id = str(uuid.uuid4())
    logger.info(f"Starting console client {client_id} against {server_url}")

    session = RealtimeSession(
        AgentServiceClient(server_url),
        agent_id=agent_id,
        meeting_id=meeting_id,
        assistant_name=assistant_name,
        player=RemoteAudioPlayer(),
        transcription_model=os.getenv("REALTIME_TRANSCRIPTION_MODEL", DEFAULT_TRANSCRIPTION_MODEL),
    )
    session.on_message = print_turn
    session.on_error = lambda e: logger.error(f"Session error: {e}")
    session.on_connected = lambda: logger.info("Connected, start talking")
    session.on_disconnected = lambda: logger.info("Disconnected")

    await session.connect()
    if session.state.status is ConnectionStatus.FAILED:
        logger.error(f"Could not connect: {session.state.error}")
        return 1

    recording_task = None
    if record:
        recording_task = asyncio.ensure_future(session.start_recording_with_retry())

    try:
        logger.info(f"Conversation will run for {duration} seconds")
        await asyncio.sleep(duration)
    except asyncio.CancelledError:
        logger.info("Conversation stopped by user")
    finally:
        if recording_task is not None and not recording_task.done():
            recording_task.cancel()
        result = await session.end_conversation()
        if result is not None:
            logger.info(f"Processing: {result.message}")

    # Echo the completed transcript
    for turn in session.transcript.turns:
        if turn.final and turn.content.strip():
            speaker = "You" if turn.role.value == "user" else assistant_name
            print(f"{speaker}: {turn.content}")

    artifact = session.last_recording
    if artifact is not None:
        RECORDINGS_DIR.mkdir(exist_ok=True)
        extension = RECORDING_EXTENSIONS.get(artifact.mime_type, "bin")
        filename = RECORDINGS_DIR / f"conversation_{client_id}.{extension}"
        filename.write_bytes(artifact.data)
        logger.info(f"Recording saved to {filename} ({artifact.size} bytes)")
    return 0


def parse_args():
    parser = argparse.ArgumentParser(description="Realtime meeting agent console client")
    parser.add_argument("--server", type=str, default=os.getenv("SIGNALING_URL", "http://localhost:8000"),
                        help="Meeting agent service URL (default: http://localhost:8000 or SIGNALING_URL env var)")
    parser.add_argument("--agent-id", type=int, default=None,
                        help="Agent configuration to talk to (default: the default persona)")
    parser.add_argument("--meeting-id", type=int, default=None,
                        help="Meeting to hand the transcript off to when the call ends")
    parser.add_argument("--name", type=str, default=DEFAULT_ASSISTANT_NAME,
                        help="Agent display name used in the transcript")
    parser.add_argument("--time", type=int, default=60,
                        help="Conversation length in seconds (default: 60)")
    parser.add_argument("--no-record", action="store_true",
                        help="Do not record the conversation")
    return parser.parse_args()


def main():
    env_path = Path(".") / ".env"
    if env_path.exists():
        dotenv.load_dotenv(env_path)
    args = parse_args()
    try:
        return asyncio.run(
            run_client(args.server, args.agent_id, args.meeting_id, args.time, args.name, not args.no_record)
        )
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
