"""
Mixed recording of both sides of a realtime conversation.

The local microphone track and the remote assistant track are mixed into a
single MixedAudioTrack, and that one track is what the recorder encodes, so
the resulting artifact always contains both speakers. The remote track
arrives asynchronously after the connection is established, hence
start_recording() reports readiness with a boolean and
start_recording_with_retry() polls it under a bounded retry policy.
"""

import asyncio
import fractions
import io
import logging
from typing import Awaitable, Callable, List, Optional

import av
import numpy as np
from aiortc import MediaStreamTrack
from aiortc.contrib.media import MediaRecorder, MediaRelay
from aiortc.mediastreams import MediaStreamError
from av.codec import Codec
from pydantic import BaseModel, ConfigDict

from meeting_agent.config.constants import (
    CHUNK,
    LOGGER_NAME,
    RECORDING_INITIAL_DELAY,
    RECORDING_MAX_ATTEMPTS,
    RECORDING_RETRY_INTERVAL,
    SAMPLE_RATE,
)

logger = logging.getLogger(LOGGER_NAME)


class RecordingFormat(BaseModel):
    """A container/codec pair the recorder may encode to."""

    model_config = ConfigDict(frozen=True)

    mime_type: str
    container: str
    codec: str


# Ordered by preference. The recorder picks its codec from the container
# (ogg -> libopus, mp4 -> aac, mp3 -> mp3, wav -> pcm_s16le).
RECORDING_FORMATS: List[RecordingFormat] = [
    RecordingFormat(mime_type="audio/ogg;codecs=opus", container="ogg", codec="libopus"),
    RecordingFormat(mime_type="audio/mp4", container="mp4", codec="aac"),
    RecordingFormat(mime_type="audio/mpeg", container="mp3", codec="mp3"),
]
DEFAULT_RECORDING_FORMAT = RecordingFormat(
    mime_type="audio/wav", container="wav", codec="pcm_s16le"
)


def is_format_supported(fmt: RecordingFormat) -> bool:
    if fmt.container not in av.formats_available:
        return False
    try:
        Codec(fmt.codec, "w")
    except ValueError:
        return False
    return True


def select_recording_format(
    formats: List[RecordingFormat] = RECORDING_FORMATS,
    is_supported: Callable[[RecordingFormat], bool] = is_format_supported,
) -> RecordingFormat:
    """
    Pick the first supported format, degrading to uncompressed WAV.
    """
    for fmt in formats:
        if is_supported(fmt):
            return fmt
        logger.debug(f"Recording format not supported: {fmt.mime_type}")
    logger.warning("No preferred recording format supported, using platform default")
    return DEFAULT_RECORDING_FORMAT


class RecordingArtifact(BaseModel):
    """Encoded recording of a whole conversation."""

    data: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.data)


class MixedAudioTrack(MediaStreamTrack):
    """
    Audio track summing a local and a remote input.

    Output is paced by the local input: every local chunk is mixed with
    whatever remote audio has arrived, padded with silence when the remote
    side is quiet. The inputs are relay subscriptions owned by this track
    and are stopped with it; the underlying source tracks are not.
    """

    kind = "audio"

    def __init__(self, local: MediaStreamTrack, remote: MediaStreamTrack):
        super().__init__()
        self.local = local
        self.remote = remote
        self._local_samples = np.zeros(0, dtype=np.int16)
        self._remote_samples = np.zeros(0, dtype=np.int16)
        self._local_ready = asyncio.Event()
        self._local_ended = False
        self._pumps: List[asyncio.Task] = []
        self._timestamp = 0

    def _start_pumps(self) -> None:
        self._pumps = [
            asyncio.ensure_future(self._pump(self.local, is_local=True)),
            asyncio.ensure_future(self._pump(self.remote, is_local=False)),
        ]

    async def _pump(self, track: MediaStreamTrack, is_local: bool) -> None:
        resampler = av.AudioResampler(format="s16", layout="mono", rate=SAMPLE_RATE)
        try:
            while True:
                frame = await track.recv()
                for resampled in resampler.resample(frame):
                    samples = resampled.to_ndarray().reshape(-1).astype(np.int16)
                    if is_local:
                        self._local_samples = np.concatenate((self._local_samples, samples))
                        if len(self._local_samples) >= CHUNK:
                            self._local_ready.set()
                    else:
                        self._remote_samples = np.concatenate((self._remote_samples, samples))
        except MediaStreamError:
            logger.debug(f"{'Local' if is_local else 'Remote'} input of mixer ended")
        except asyncio.CancelledError:
            pass
        finally:
            if is_local:
                self._local_ended = True
                self._local_ready.set()

    async def recv(self):
        if self.readyState != "live":
            raise MediaStreamError
        if not self._pumps:
            self._start_pumps()

        while len(self._local_samples) < CHUNK:
            if self._local_ended:
                self.stop()
                raise MediaStreamError
            self._local_ready.clear()
            await self._local_ready.wait()

        local = self._local_samples[:CHUNK]
        self._local_samples = self._local_samples[CHUNK:]
        remote = self._remote_samples[:CHUNK]
        self._remote_samples = self._remote_samples[CHUNK:]
        if len(remote) < CHUNK:
            remote = np.pad(remote, (0, CHUNK - len(remote)))

        mixed = np.clip(
            local.astype(np.int32) + remote.astype(np.int32), -32768, 32767
        ).astype(np.int16)

        frame = av.AudioFrame.from_ndarray(mixed.reshape(1, -1), format="s16", layout="mono")
        frame.sample_rate = SAMPLE_RATE
        frame.time_base = fractions.Fraction(1, SAMPLE_RATE)
        frame.pts = self._timestamp
        self._timestamp += CHUNK
        return frame

    def stop(self):
        super().stop()
        for task in self._pumps:
            task.cancel()
        self._pumps = []
        self.local.stop()
        self.remote.stop()


class MixedRecorder:
    """
    Records the mix of the local and remote tracks of one session.
    """

    def __init__(
        self,
        relay: Optional[MediaRelay] = None,
        formats: List[RecordingFormat] = RECORDING_FORMATS,
        recorder_factory: Callable[..., MediaRecorder] = MediaRecorder,
        is_supported: Callable[[RecordingFormat], bool] = is_format_supported,
    ):
        self.relay = relay or MediaRelay()
        self.formats = formats
        self.recorder_factory = recorder_factory
        self.is_supported = is_supported
        self.local_track: Optional[MediaStreamTrack] = None
        self.remote_track: Optional[MediaStreamTrack] = None
        self.format: Optional[RecordingFormat] = None
        self._mixer: Optional[MixedAudioTrack] = None
        self._recorder: Optional[MediaRecorder] = None
        self._buffer: Optional[io.BytesIO] = None

    @property
    def is_recording(self) -> bool:
        return self._recorder is not None

    def attach_local(self, track: Optional[MediaStreamTrack]) -> None:
        self.local_track = track

    def attach_remote(self, track: Optional[MediaStreamTrack]) -> None:
        self.remote_track = track

    async def start_recording(self) -> bool:
        """
        Start recording the mixed conversation.

        Returns:
            bool: False if either track is missing or the recorder could not
                start, True once recording is in progress
        """
        if self.local_track is None or self.remote_track is None:
            logger.warning("Cannot start recording: streams not available")
            return False

        if self._recorder is not None:
            logger.info("Recording already in progress")
            return True

        fmt = select_recording_format(self.formats, self.is_supported)
        buffer = io.BytesIO()
        mixer = MixedAudioTrack(
            self.relay.subscribe(self.local_track),
            self.relay.subscribe(self.remote_track),
        )
        try:
            recorder = self.recorder_factory(buffer, format=fmt.container)
            recorder.addTrack(mixer)
            await recorder.start()
        except Exception as e:
            logger.error(f"Failed to start recording: {e}", exc_info=True)
            mixer.stop()
            return False

        self.format = fmt
        self._buffer = buffer
        self._mixer = mixer
        self._recorder = recorder
        logger.info(f"Recording started with MIME type: {fmt.mime_type}")
        return True

    async def stop_recording(self) -> Optional[RecordingArtifact]:
        """
        Stop recording and return the artifact.

        The recorder is stopped first, which flushes the encoder and writes
        the container trailer, so the artifact holds all captured audio.

        Returns:
            The artifact, or None if no recording was active
        """
        recorder, mixer, buffer, fmt = self._recorder, self._mixer, self._buffer, self.format
        self._recorder = None
        self._mixer = None
        self._buffer = None
        if recorder is None:
            return None

        try:
            await recorder.stop()
        finally:
            if mixer is not None:
                mixer.stop()

        artifact = RecordingArtifact(data=buffer.getvalue(), mime_type=fmt.mime_type)
        logger.info(f"Recording stopped: {artifact.size} bytes")
        return artifact

    def abort(self) -> None:
        """
        Synchronously drop an in-flight recording during teardown.

        Stopping the mixer ends the recorder's input; the partial recording
        is discarded.
        """
        if self._mixer is not None:
            self._mixer.stop()
        if self._recorder is not None:
            logger.info("Recording aborted during teardown")
        self._recorder = None
        self._mixer = None
        self._buffer = None

    def release(self) -> None:
        """Abort any recording and forget both tracks."""
        self.abort()
        self.local_track = None
        self.remote_track = None


class RecordingRetryPolicy(BaseModel):
    """Bounded retry budget for starting a recording."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = RECORDING_MAX_ATTEMPTS
    interval: float = RECORDING_RETRY_INTERVAL
    initial_delay: float = RECORDING_INITIAL_DELAY


async def start_recording_with_retry(
    start: Callable[[], Awaitable[bool]],
    policy: RecordingRetryPolicy = RecordingRetryPolicy(),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> bool:
    """
    Call start() until it succeeds or the attempt budget is exhausted.

    Args:
        start: Coroutine function returning True once recording started
        policy: Attempt count, fixed interval and initial delay
        sleep: Sleep function, replaceable in tests

    Returns:
        bool: True if recording started within the budget
    """
    if policy.initial_delay > 0:
        await sleep(policy.initial_delay)
    for attempt in range(1, policy.max_attempts + 1):
        if await start():
            logger.info(f"Recording started on attempt {attempt}")
            return True
        if attempt < policy.max_attempts:
            await sleep(policy.interval)
    logger.warning(f"Recording not started after {policy.max_attempts} attempts")
    return False
