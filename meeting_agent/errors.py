"""
Error taxonomy for realtime sessions.

All connect and teardown failures are converted into one of these exceptions
at the component that detects them, then caught at the session boundary where
they become the session's error state and an error observer callback.
A recorder whose tracks are not ready is not an error: start_recording()
returns False and the caller retries.
"""

from typing import Optional


class RealtimeSessionError(Exception):
    """Base class for session failures."""


class MediaAcquisitionError(RealtimeSessionError):
    """The local microphone is unavailable or access was denied."""


class SignalingError(RealtimeSessionError):
    """
    The offer/answer exchange failed.

    status_code carries the HTTP status returned by the relay or the
    upstream calls endpoint, or None for network failures.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(RealtimeSessionError):
    """The peer connection reported a failed state."""


class ProtocolError(RealtimeSessionError):
    """The upstream sent an error event over the data channel."""
