"""
Decodes data channel messages into normalized events and dispatches them.

Every message received on the realtime data channel goes through
EventNormalizer.dispatch(). Messages are parsed into a RealtimeServerEvent,
translated to a NormalizedEvent through RAW_EVENT_KINDS and handed to the
registered handlers. Unknown event types, malformed JSON and handler
failures are logged and dropped; nothing raises back into the transport.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from meeting_agent.config.constants import LOGGER_NAME
from meeting_agent.models.events import RAW_EVENT_KINDS, EventKind, NormalizedEvent
from meeting_agent.models.realtime_schemas import RealtimeServerEvent

logger = logging.getLogger(LOGGER_NAME)

EventHandler = Callable[[NormalizedEvent], None]


def parse_server_event(message: Union[str, bytes, Dict[str, Any]]) -> Optional[RealtimeServerEvent]:
    """
    Parse a raw data channel message.

    Returns:
        The parsed envelope, or None if the message is not a valid event
    """
    try:
        if isinstance(message, bytes):
            message = message.decode("utf-8")
        data = json.loads(message) if isinstance(message, str) else message
        return RealtimeServerEvent(**data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(f"Failed to parse server event: {e}")
    except (ValidationError, TypeError) as e:
        logger.error(f"Invalid server event: {e}")
    return None


def normalize_event(event: RealtimeServerEvent) -> Optional[NormalizedEvent]:
    """
    Translate a raw server event to its normalized form.

    Returns:
        The normalized event, or None for unknown types and for items the
        client does not track (for example assistant conversation items)
    """
    kind = RAW_EVENT_KINDS.get(event.type)
    if kind is None:
        logger.debug(f"Unhandled realtime event: {event.type}")
        return None

    if kind is EventKind.USER_TRANSCRIPT_COMPLETED:
        return NormalizedEvent(kind=kind, raw_type=event.type, text=event.transcript, role="user")

    if kind is EventKind.USER_ITEM_CREATED:
        text = event.item_text()
        if event.item_role != "user" or not text:
            return NormalizedEvent(kind=EventKind.INFORMATIONAL, raw_type=event.type)
        return NormalizedEvent(kind=kind, raw_type=event.type, text=text, role="user")

    if kind is EventKind.ASSISTANT_ITEM_ADDED:
        if event.item_role != "assistant":
            return NormalizedEvent(kind=EventKind.INFORMATIONAL, raw_type=event.type)
        return NormalizedEvent(kind=kind, raw_type=event.type, role="assistant")

    if kind is EventKind.ASSISTANT_DELTA:
        return NormalizedEvent(kind=kind, raw_type=event.type, text=event.delta)

    if kind is EventKind.ASSISTANT_DONE:
        return NormalizedEvent(
            kind=kind, raw_type=event.type, text=event.transcript or event.text
        )

    if kind is EventKind.ERROR:
        return NormalizedEvent(kind=kind, raw_type=event.type, error_message=event.error_message)

    return NormalizedEvent(kind=kind, raw_type=event.type)


class EventNormalizer:
    """
    Routes normalized events to handlers.

    Handlers registered for None receive every event; handlers registered
    for an EventKind receive only that kind. Handlers run in registration
    order.
    """

    def __init__(self):
        self.handlers: Dict[Optional[EventKind], List[EventHandler]] = {}

    def register(self, handler: EventHandler, kind: Optional[EventKind] = None) -> None:
        self.handlers.setdefault(kind, []).append(handler)

    def dispatch(self, message: Union[str, bytes, Dict[str, Any]]) -> Optional[NormalizedEvent]:
        """
        Decode one data channel message and dispatch it.

        Args:
            message: Raw JSON text, bytes or an already decoded dict

        Returns:
            The normalized event, or None if the message was dropped
        """
        raw_event = parse_server_event(message)
        if raw_event is None:
            return None

        event = normalize_event(raw_event)
        if event is None:
            return None

        if event.kind is EventKind.INFORMATIONAL:
            logger.debug(f"Realtime event: {event.raw_type}")
        else:
            logger.debug(f"Realtime event: {event.raw_type} -> {event.kind.value}")

        for handler in self.handlers.get(None, []) + self.handlers.get(event.kind, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error handling {event.raw_type} event: {e}", exc_info=True)
        return event
