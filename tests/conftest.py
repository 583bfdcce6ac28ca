import asyncio
import fractions
import json
import logging
from unittest.mock import patch

import av
import numpy as np
import pytest
from aiortc import MediaStreamTrack, RTCSessionDescription
from aiortc.exceptions import InvalidStateError
from aiortc.mediastreams import MediaStreamError

from meeting_agent.config.constants import CHUNK, SAMPLE_RATE


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


class FakeAudioTrack(MediaStreamTrack):
    """Audio track producing constant 20ms frames without any device."""

    kind = "audio"

    def __init__(self, value=1000, order=None):
        super().__init__()
        self.value = value
        self.enabled = True
        self.stop_count = 0
        self.order = order
        self.timestamp = 0

    async def recv(self):
        if self.readyState != "live":
            raise MediaStreamError
        await asyncio.sleep(0)
        samples = np.full(CHUNK, self.value if self.enabled else 0, dtype=np.int16)
        frame = av.AudioFrame.from_ndarray(samples.reshape(1, -1), format="s16", layout="mono")
        frame.sample_rate = SAMPLE_RATE
        frame.time_base = fractions.Fraction(1, SAMPLE_RATE)
        frame.pts = self.timestamp
        self.timestamp += CHUNK
        return frame

    def stop(self):
        self.stop_count += 1
        if self.order is not None:
            self.order.append("local_track")
        super().stop()


class FakeDataChannel:
    """Stand-in for an RTCDataChannel that records what is sent."""

    def __init__(self, label, order=None):
        self.label = label
        self.readyState = "connecting"
        self.sent = []
        self.handlers = {}
        self.order = order

    def on(self, event):
        def decorator(fn):
            self.handlers[event] = fn
            return fn
        return decorator

    def emit(self, event, *args):
        handler = self.handlers.get(event)
        if handler:
            handler(*args)

    def open(self):
        self.readyState = "open"
        self.emit("open")

    def receive(self, payload):
        self.emit("message", payload if isinstance(payload, str) else json.dumps(payload))

    def send(self, data):
        self.sent.append(data)

    def sent_types(self):
        return [json.loads(message)["type"] for message in self.sent]

    def close(self):
        if self.readyState == "closed":
            return
        if self.order is not None:
            self.order.append("data_channel")
        self.readyState = "closed"
        self.emit("close")


class FakePeerConnection:
    """Stand-in for RTCPeerConnection driven explicitly by tests."""

    def __init__(self, configuration=None, gather_delay=0.0, answer_error=None, order=None):
        self.configuration = configuration
        self.connectionState = "new"
        self.handlers = {}
        self.tracks = []
        self.data_channel = None
        self.localDescription = None
        self.remote_description = None
        self.gather_delay = gather_delay
        self.answer_error = answer_error
        self.order = order
        self.closed = False

    def on(self, event):
        def decorator(fn):
            self.handlers[event] = fn
            return fn
        return decorator

    def emit(self, event, *args):
        handler = self.handlers.get(event)
        if handler:
            handler(*args)

    def addTrack(self, track):
        self.tracks.append(track)

    def createDataChannel(self, label):
        self.data_channel = FakeDataChannel(label, order=self.order)
        return self.data_channel

    async def createOffer(self):
        return RTCSessionDescription(sdp="v=0 offer", type="offer")

    async def setLocalDescription(self, description):
        if self.gather_delay:
            await asyncio.sleep(self.gather_delay)
        self.localDescription = RTCSessionDescription(
            sdp=description.sdp + " with-candidates", type=description.type
        )

    async def setRemoteDescription(self, description):
        if self.closed:
            raise InvalidStateError('Cannot handle answer in signaling state "closed"')
        if self.answer_error:
            raise self.answer_error
        self.remote_description = description

    def set_state(self, state):
        self.connectionState = state
        self.emit("connectionstatechange")

    async def close(self):
        if self.closed:
            return
        self.closed = True
        if self.order is not None:
            self.order.append("peer_connection")
        self.set_state("closed")


class PeerConnectionLog:
    """Fake peer connections created so far, plus options applied to new ones."""

    def __init__(self):
        self.created = []
        self.options = {}

    def __call__(self, *args, **kwargs):
        pc = FakePeerConnection(*args, **kwargs, **self.options)
        self.created.append(pc)
        return pc

    def __len__(self):
        return len(self.created)

    def __getitem__(self, index):
        return self.created[index]


@pytest.fixture
def peer_connections():
    """Patch the negotiator's peer connection class with FakePeerConnection."""
    log = PeerConnectionLog()
    with patch("meeting_agent.session.negotiator.RTCPeerConnection", side_effect=log):
        yield log
