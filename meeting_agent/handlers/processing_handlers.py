"""
Hands finished conversations off to background processing.
"""

import logging

from fastapi import BackgroundTasks

from meeting_agent.config.constants import CALL_ENDED_EVENT, LOGGER_NAME
from meeting_agent.models.signaling_schemas import (
    CallEndedData,
    ProcessMeetingRequest,
    ProcessMeetingResponse,
    TaskQueueEvent,
)
from meeting_agent.services.task_queue import TaskQueueClient

logger = logging.getLogger(LOGGER_NAME)


def handle_process_meeting(
    meeting_id: int,
    request: ProcessMeetingRequest,
    background_tasks: BackgroundTasks,
    task_queue: TaskQueueClient,
) -> ProcessMeetingResponse:
    """
    Queue the call-ended event for a meeting.

    The event is published after the response is sent; the caller is told
    processing started without waiting for the queue.

    Args:
        meeting_id: The meeting whose call ended
        request: The transcript records of the call
        background_tasks: FastAPI background task list of the current request
        task_queue: Client for the task queue event API

    Returns:
        ProcessMeetingResponse: Acknowledgement for the caller
    """
    event = TaskQueueEvent(
        name=CALL_ENDED_EVENT,
        data=CallEndedData(meetingId=meeting_id, transcriptData=request.transcriptData),
    )
    background_tasks.add_task(task_queue.send, event)
    logger.info(
        f"Triggered background processing for meeting {meeting_id} "
        f"({len(request.transcriptData)} transcript records)"
    )
    return ProcessMeetingResponse(success=True, message="Processing started in background")
