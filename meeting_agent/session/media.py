"""
Local audio devices for a realtime session.

MicrophoneStreamTrack captures the local microphone as an aiortc audio track;
RemoteAudioPlayer plays the remote track on the default output device. Both
use PyAudio for device access and PyAV frames for the track interface.
"""

import asyncio
import fractions
import logging
from typing import Optional

import av
import numpy as np
import pyaudio
from aiortc import MediaStreamTrack
from aiortc.mediastreams import MediaStreamError

from meeting_agent.config.constants import CHANNELS, CHUNK, LOGGER_NAME, SAMPLE_RATE
from meeting_agent.errors import MediaAcquisitionError

logger = logging.getLogger(LOGGER_NAME)

FORMAT = pyaudio.paInt16


class MicrophoneStreamTrack(MediaStreamTrack):
    """MediaStreamTrack that captures audio from the microphone."""

    kind = "audio"

    def __init__(self, device_index: Optional[int] = None):
        """
        Open the input device.

        Args:
            device_index: PyAudio input device index, default device if None

        Raises:
            MediaAcquisitionError: If no input device exists or it cannot be opened
        """
        super().__init__()
        self.enabled = True
        self.timestamp = 0
        self.p = pyaudio.PyAudio()
        try:
            if device_index is None:
                # Raises IOError when the host has no input device at all
                self.p.get_default_input_device_info()
            self.stream = self.p.open(
                format=FORMAT,
                channels=CHANNELS,
                rate=SAMPLE_RATE,
                input=True,
                input_device_index=device_index,
                frames_per_buffer=CHUNK,
            )
        except (IOError, OSError) as e:
            self.p.terminate()
            self.p = None
            self.stream = None
            raise MediaAcquisitionError(f"Microphone unavailable: {e}") from e
        logger.info(f"Microphone initialized: {SAMPLE_RATE}Hz, {CHANNELS} channel(s)")

    async def recv(self):
        """Get the next 20ms frame from the microphone."""
        if self.readyState != "live" or self.stream is None:
            raise MediaStreamError

        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self.stream.read, CHUNK, False)
        samples = np.frombuffer(data, np.int16)
        if not self.enabled:
            samples = np.zeros_like(samples)

        frame = av.AudioFrame.from_ndarray(
            samples.reshape(1, -1),
            format="s16",
            layout="mono" if CHANNELS == 1 else "stereo",
        )
        frame.sample_rate = SAMPLE_RATE
        frame.time_base = fractions.Fraction(1, SAMPLE_RATE)
        frame.pts = self.timestamp
        self.timestamp += CHUNK
        return frame

    def stop(self):
        """Stop the track and release the input device. Safe to call repeatedly."""
        super().stop()
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except (IOError, OSError) as e:
                logger.warning(f"Error closing microphone stream: {e}")
            self.stream = None
            if self.p is not None:
                self.p.terminate()
                self.p = None
            logger.info("Microphone stopped")


class RemoteAudioPlayer:
    """Plays a remote audio track on the default output device."""

    def __init__(self):
        self.track: Optional[MediaStreamTrack] = None
        self.p = None
        self.stream = None
        self._task: Optional[asyncio.Task] = None
        self._resampler = av.AudioResampler(format="s16", layout="mono", rate=SAMPLE_RATE)

    def start(self, track: MediaStreamTrack) -> None:
        """Start playing the track, replacing any previous one."""
        self.stop()
        self.track = track
        self.p = pyaudio.PyAudio()
        self.stream = self.p.open(
            format=FORMAT,
            channels=1,
            rate=SAMPLE_RATE,
            output=True,
            frames_per_buffer=CHUNK,
        )
        self._task = asyncio.ensure_future(self._play())
        logger.info("Remote audio playback started")

    async def _play(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            while True:
                frame = await self.track.recv()
                for resampled in self._resampler.resample(frame):
                    data = resampled.to_ndarray().tobytes()
                    await loop.run_in_executor(None, self.stream.write, data)
        except MediaStreamError:
            logger.info("Remote audio track ended")
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Error playing remote audio: {e}", exc_info=True)

    def stop(self) -> None:
        """Stop playback and release the output device. Safe to call repeatedly."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except (IOError, OSError) as e:
                logger.warning(f"Error closing output stream: {e}")
            self.stream = None
        if self.p is not None:
            self.p.terminate()
            self.p = None
        self.track = None
