"""
Transcript assembly for realtime voice conversations.

This module provides the TranscriptAssembler class which turns the stream of
normalized realtime events into an ordered list of speaker-attributed turns.
User speech arrives as complete utterances, while assistant speech is opened,
grown by deltas and finalized, possibly out of order with respect to the
enclosing item and response completion events.
"""

import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional

from pydantic import BaseModel, Field

from meeting_agent.config.constants import (
    DEFAULT_ASSISTANT_NAME,
    LOGGER_NAME,
    USER_SPEAKER_NAME,
)
from meeting_agent.models.signaling_schemas import TranscriptRecord

logger = logging.getLogger(LOGGER_NAME)


class TurnRole(str, Enum):
    """Speaker of a turn."""
    USER = "user"
    ASSISTANT = "assistant"


class Turn(BaseModel):
    """One attributable span of speech."""
    id: int
    role: TurnRole
    content: str = ""
    final: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TranscriptAssembler:
    """
    Maintains the ordered turns of one session.

    At most one assistant turn is open at a time. A turn's content only grows
    while it is open and never changes once it is final.
    """

    def __init__(self, on_message: Optional[Callable[[Turn], None]] = None):
        """
        Initialize an empty transcript.

        Args:
            on_message: Optional observer called with every newly opened turn
        """
        self.turns: List[Turn] = []
        self.current_assistant_turn_id: Optional[int] = None
        self._turns_by_id: Dict[int, Turn] = {}
        self._next_id = 0
        self._on_message = on_message
        self._pending_echoes: Deque[str] = deque()

    def open_turn(self, role: TurnRole) -> int:
        """
        Append a new, non-final turn.

        Args:
            role: The speaker of the new turn

        Returns:
            The identity of the new turn
        """
        role = TurnRole(role)
        if role is TurnRole.ASSISTANT and self.current_assistant_turn_id is not None:
            logger.warning(
                f"Assistant turn {self.current_assistant_turn_id} still open, finalizing it"
            )
            self.finalize(self.current_assistant_turn_id)

        self._next_id += 1
        turn = Turn(id=self._next_id, role=role)
        self.turns.append(turn)
        self._turns_by_id[turn.id] = turn

        if role is TurnRole.ASSISTANT:
            self.current_assistant_turn_id = turn.id

        self._notify(turn)
        return turn.id

    def get_turn(self, turn_id: int) -> Optional[Turn]:
        return self._turns_by_id.get(turn_id)

    def append_delta(self, turn_id: int, text: str) -> bool:
        """
        Concatenate text onto an open turn.

        Args:
            turn_id: The turn to extend
            text: The delta text

        Returns:
            True if the delta was applied, False if it was rejected
        """
        turn = self._turns_by_id.get(turn_id)
        if turn is None:
            logger.warning(f"Ignoring delta for unknown turn {turn_id}")
            return False
        if turn.final:
            logger.warning(f"Ignoring delta for finalized turn {turn_id}")
            return False
        turn.content += text
        return True

    def finalize(self, turn_id: int) -> bool:
        """
        Mark a turn final. Finalizing a final turn is a no-op.

        Returns:
            True if the turn transitioned to final on this call
        """
        turn = self._turns_by_id.get(turn_id)
        if turn is None:
            logger.warning(f"Cannot finalize unknown turn {turn_id}")
            return False
        if turn.final:
            return False
        turn.final = True
        logger.debug(f"Finalized {turn.role.value} turn {turn_id}: {turn.content[:80]}")
        return True

    def user_utterance_complete(self, text: str) -> Optional[int]:
        """
        Record a complete user utterance as a single final turn.

        User transcription arrives as one complete unit, so the turn is
        opened and finalized in one step and never exposed half-built.
        """
        if not text:
            logger.debug("Ignoring empty user utterance")
            return None
        self._next_id += 1
        turn = Turn(id=self._next_id, role=TurnRole.USER, content=text, final=True)
        self.turns.append(turn)
        self._turns_by_id[turn.id] = turn
        self._notify(turn)
        return turn.id

    # Helpers driven by the event normalizer

    def append_assistant_delta(self, text: str) -> bool:
        if self.current_assistant_turn_id is None:
            logger.warning("Received assistant delta with no open assistant turn")
            return False
        if not text:
            return False
        return self.append_delta(self.current_assistant_turn_id, text)

    def finalize_assistant_turn(self) -> bool:
        if self.current_assistant_turn_id is None:
            logger.debug("No open assistant turn to finalize")
            return False
        return self.finalize(self.current_assistant_turn_id)

    def close_assistant_item(self) -> None:
        """Finalize the open assistant turn if needed and clear the pointer."""
        if self.current_assistant_turn_id is not None:
            self.finalize(self.current_assistant_turn_id)
        self.current_assistant_turn_id = None

    def complete_response(self) -> None:
        """
        Handle response completion.

        Whatever content accumulated on a still-open assistant turn is kept
        and finalized; the upstream may have omitted the explicit done event.
        """
        if self.current_assistant_turn_id is not None:
            if self.finalize(self.current_assistant_turn_id):
                logger.info(
                    f"Finalized assistant turn {self.current_assistant_turn_id} on response completion"
                )
        self.current_assistant_turn_id = None

    def add_injected_text(self, text: str) -> Optional[int]:
        """
        Record user text sent over the data channel.

        The server echoes injected text back as a conversation item; the echo
        is remembered so that it does not produce a second user turn.
        """
        turn_id = self.user_utterance_complete(text)
        if turn_id is not None:
            self._pending_echoes.append(text)
        return turn_id

    def consume_echo(self, text: str) -> bool:
        """Return True (and forget it) if text is the echo of injected text."""
        if self._pending_echoes and self._pending_echoes[0] == text:
            self._pending_echoes.popleft()
            return True
        return False

    def open_turns(self) -> List[Turn]:
        return [turn for turn in self.turns if not turn.final]

    def reset(self) -> None:
        self.turns = []
        self._turns_by_id = {}
        self._pending_echoes.clear()
        self.current_assistant_turn_id = None
        self._next_id = 0

    def transcript_records(self, assistant_name: str = DEFAULT_ASSISTANT_NAME) -> List[TranscriptRecord]:
        """
        Build the hand-off records for background processing.

        Only final turns with non-blank content are included, in order.

        Args:
            assistant_name: Speaker name used for assistant turns

        Returns:
            List of {speaker, content, timestamp} records, timestamp in epoch ms
        """
        return [
            TranscriptRecord(
                speaker=USER_SPEAKER_NAME if turn.role is TurnRole.USER else assistant_name,
                content=turn.content,
                timestamp=int(turn.timestamp.timestamp() * 1000),
            )
            for turn in self.turns
            if turn.final and turn.content.strip()
        ]

    def _notify(self, turn: Turn) -> None:
        if not self._on_message:
            return
        try:
            self._on_message(turn)
        except Exception as e:
            logger.error(f"Error in message observer: {e}", exc_info=True)
