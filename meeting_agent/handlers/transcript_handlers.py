"""
Applies normalized realtime events to a TranscriptAssembler.

Each handler covers one EventKind. Assistant turns can be finalized by three
different events (text/transcript done, output item done and response done)
because the upstream does not guarantee that the specific done event is
delivered before the enclosing item or response completes.
"""

import logging
from typing import Callable, Dict

from meeting_agent.config.constants import LOGGER_NAME
from meeting_agent.models.events import EventKind, NormalizedEvent
from meeting_agent.models.transcript import TranscriptAssembler, TurnRole

logger = logging.getLogger(LOGGER_NAME)


def handle_user_transcript(event: NormalizedEvent, assembler: TranscriptAssembler) -> None:
    assembler.user_utterance_complete(event.text or "")


def handle_user_item_created(event: NormalizedEvent, assembler: TranscriptAssembler) -> None:
    text = event.text or ""
    if assembler.consume_echo(text):
        logger.debug("Skipping echo of injected user text")
        return
    assembler.user_utterance_complete(text)


def handle_assistant_item_added(event: NormalizedEvent, assembler: TranscriptAssembler) -> None:
    assembler.open_turn(TurnRole.ASSISTANT)


def handle_assistant_delta(event: NormalizedEvent, assembler: TranscriptAssembler) -> None:
    assembler.append_assistant_delta(event.text or "")


def handle_assistant_done(event: NormalizedEvent, assembler: TranscriptAssembler) -> None:
    assembler.finalize_assistant_turn()


def handle_assistant_item_done(event: NormalizedEvent, assembler: TranscriptAssembler) -> None:
    assembler.close_assistant_item()


def handle_response_done(event: NormalizedEvent, assembler: TranscriptAssembler) -> None:
    assembler.complete_response()


TRANSCRIPT_HANDLERS: Dict[EventKind, Callable[[NormalizedEvent, TranscriptAssembler], None]] = {
    EventKind.USER_TRANSCRIPT_COMPLETED: handle_user_transcript,
    EventKind.USER_ITEM_CREATED: handle_user_item_created,
    EventKind.ASSISTANT_ITEM_ADDED: handle_assistant_item_added,
    EventKind.ASSISTANT_DELTA: handle_assistant_delta,
    EventKind.ASSISTANT_DONE: handle_assistant_done,
    EventKind.ASSISTANT_ITEM_DONE: handle_assistant_item_done,
    EventKind.RESPONSE_DONE: handle_response_done,
}


def apply_event(event: NormalizedEvent, assembler: TranscriptAssembler) -> None:
    """Apply one normalized event to the transcript; other kinds are ignored."""
    handler = TRANSCRIPT_HANDLERS.get(event.kind)
    if handler:
        handler(event, assembler)
