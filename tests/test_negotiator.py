"""
Unit tests for the WebRTC transport negotiator.

The peer connection is replaced with FakePeerConnection so that ICE
gathering, state changes and data channel events are driven by the tests.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiortc import RTCIceServer

from conftest import FakeAudioTrack
from meeting_agent.errors import MediaAcquisitionError, SignalingError, TransportError
from meeting_agent.services.agent_service_client import AgentServiceClient
from meeting_agent.session.negotiator import TransportNegotiator


@pytest.fixture
def signaling():
    client = MagicMock(spec=AgentServiceClient)
    client.exchange_offer = AsyncMock(return_value="v=0 answer")
    return client


@pytest.fixture
def negotiator(signaling):
    return TransportNegotiator(
        signaling,
        agent_id=7,
        media_source_factory=FakeAudioTrack,
        relay=MagicMock(),
    )


@pytest.mark.asyncio
async def test_connect_creates_channel_before_offer(negotiator, signaling, peer_connections):
    """The data channel is created on the peer connection and the answer applied."""
    result = await negotiator.connect()

    assert result is True
    assert len(peer_connections) == 1
    pc = peer_connections[0]
    assert pc.data_channel.label == "oai-events"
    assert len(pc.tracks) == 1
    assert pc.remote_description.sdp == "v=0 answer"
    assert pc.remote_description.type == "answer"
    signaling.exchange_offer.assert_awaited_once_with("v=0 offer with-candidates", 7)


@pytest.mark.asyncio
async def test_connect_uses_configured_ice_servers(signaling, peer_connections):
    negotiator = TransportNegotiator(
        signaling,
        ice_servers=["stun:stun.example.org:3478"],
        media_source_factory=FakeAudioTrack,
        relay=MagicMock(),
    )
    await negotiator.connect()

    servers = peer_connections[0].configuration.iceServers
    assert len(servers) == 1
    assert isinstance(servers[0], RTCIceServer)
    assert servers[0].urls == "stun:stun.example.org:3478"


@pytest.mark.asyncio
async def test_connect_default_ice_server(negotiator, peer_connections):
    await negotiator.connect()
    servers = peer_connections[0].configuration.iceServers
    assert servers[0].urls == "stun:stun.l.google.com:19302"


@pytest.mark.asyncio
async def test_ice_gathering_timeout_sends_unfinalized_offer(signaling, peer_connections):
    """When gathering outlasts the cap the offer is sent as it stands."""
    peer_connections.options["gather_delay"] = 0.2
    negotiator = TransportNegotiator(
        signaling,
        media_source_factory=FakeAudioTrack,
        relay=MagicMock(),
        ice_gathering_timeout=0.01,
    )

    result = await negotiator.connect()

    assert result is True
    signaling.exchange_offer.assert_awaited_once_with("v=0 offer", None)
    # The local description still completes before the answer is applied
    assert peer_connections[0].localDescription is not None
    assert peer_connections[0].remote_description.sdp == "v=0 answer"


@pytest.mark.asyncio
async def test_connect_is_noop_when_transport_exists(negotiator, signaling, peer_connections):
    await negotiator.connect()
    result = await negotiator.connect()

    assert result is False
    assert len(peer_connections) == 1
    assert signaling.exchange_offer.await_count == 1


@pytest.mark.asyncio
async def test_media_failure_creates_no_peer_connection(signaling, peer_connections):
    def no_microphone():
        raise MediaAcquisitionError("Microphone unavailable")

    negotiator = TransportNegotiator(signaling, media_source_factory=no_microphone, relay=MagicMock())

    with pytest.raises(MediaAcquisitionError):
        await negotiator.connect()

    assert len(peer_connections) == 0
    assert negotiator.active is False
    signaling.exchange_offer.assert_not_awaited()


@pytest.mark.asyncio
async def test_signaling_failure_tears_down(negotiator, signaling, peer_connections):
    """Resources acquired before the failure are released before it surfaces."""
    signaling.exchange_offer.side_effect = SignalingError("Failed to create session: 401", status_code=401)

    with pytest.raises(SignalingError) as exc_info:
        await negotiator.connect()

    assert exc_info.value.status_code == 401
    pc = peer_connections[0]
    assert pc.closed is True
    assert pc.data_channel.readyState == "closed"
    assert negotiator.active is False
    assert negotiator.local_track is None


@pytest.mark.asyncio
async def test_rejected_answer_becomes_transport_error(negotiator, peer_connections):
    peer_connections.options["answer_error"] = ValueError("Invalid SDP")

    with pytest.raises(TransportError):
        await negotiator.connect()

    assert peer_connections[0].closed is True
    assert negotiator.active is False


@pytest.mark.asyncio
async def test_callbacks_receive_transport_events(negotiator, peer_connections):
    states = []
    tracks = []
    messages = []
    opened = MagicMock()
    closed = MagicMock()
    negotiator.set_handlers(
        on_state_change=states.append,
        on_track=tracks.append,
        on_channel_open=opened,
        on_channel_message=messages.append,
        on_channel_close=closed,
    )
    await negotiator.connect()
    pc = peer_connections[0]

    pc.set_state("connecting")
    pc.set_state("connected")
    remote = FakeAudioTrack()
    pc.emit("track", remote)
    pc.data_channel.open()
    pc.data_channel.receive({"type": "session.created"})
    pc.data_channel.close()

    assert states == ["connecting", "connected"]
    assert tracks == [remote]
    assert negotiator.remote_track is remote
    opened.assert_called_once()
    assert messages == ['{"type": "session.created"}']
    closed.assert_called_once()


@pytest.mark.asyncio
async def test_video_tracks_are_ignored(negotiator, peer_connections):
    on_track = MagicMock()
    negotiator.set_handlers(on_track=on_track)
    await negotiator.connect()

    video = MagicMock()
    video.kind = "video"
    peer_connections[0].emit("track", video)

    on_track.assert_not_called()
    assert negotiator.remote_track is None


@pytest.mark.asyncio
async def test_send_requires_open_channel(negotiator, peer_connections):
    assert negotiator.send({"type": "response.create"}) is False

    await negotiator.connect()
    channel = peer_connections[0].data_channel
    assert negotiator.send({"type": "response.create"}) is False

    channel.open()
    assert negotiator.send({"type": "response.create"}) is True
    assert negotiator.send('{"type": "response.cancel"}') is True
    assert channel.sent_types() == ["response.create", "response.cancel"]


@pytest.mark.asyncio
async def test_close_order_and_idempotence(signaling, peer_connections):
    """Data channel, then peer connection, then local track; repeat closes do nothing."""
    order = []
    peer_connections.options["order"] = order
    negotiator = TransportNegotiator(
        signaling,
        media_source_factory=lambda: FakeAudioTrack(order=order),
        relay=MagicMock(),
    )
    await negotiator.connect()
    local_track = negotiator.local_track

    await negotiator.close()
    await negotiator.close()

    assert order == ["data_channel", "peer_connection", "local_track"]
    assert local_track.stop_count == 1
    assert negotiator.pc is None
    assert negotiator.data_channel is None
    assert negotiator.local_track is None


@pytest.mark.asyncio
async def test_close_without_connect(negotiator):
    await negotiator.close()
    assert negotiator.active is False


@pytest.mark.asyncio
async def test_events_from_closed_peer_connection_are_dropped(negotiator, peer_connections):
    states = []
    negotiator.set_handlers(on_state_change=states.append)
    await negotiator.connect()
    pc = peer_connections[0]

    await negotiator.close()
    pc.set_state("failed")

    assert states == []


@pytest.mark.asyncio
async def test_channel_events_after_close_are_dropped(negotiator, peer_connections):
    opened = MagicMock()
    messages = []
    negotiator.set_handlers(on_channel_open=opened, on_channel_message=messages.append)
    await negotiator.connect()
    channel = peer_connections[0].data_channel

    await negotiator.close()
    channel.emit("open")
    channel.emit("message", '{"type": "response.created"}')

    opened.assert_not_called()
    assert messages == []


@pytest.mark.asyncio
async def test_close_during_offer_exchange_abandons_connect(negotiator, signaling, peer_connections):
    """An answer arriving after close() is not applied and raises nothing."""
    answer_ready = asyncio.Event()

    async def slow_exchange(sdp, agent_id):
        await answer_ready.wait()
        return "v=0 answer"

    signaling.exchange_offer.side_effect = slow_exchange
    connecting = asyncio.ensure_future(negotiator.connect())
    while signaling.exchange_offer.await_count == 0:
        await asyncio.sleep(0)

    await negotiator.close()
    answer_ready.set()

    assert await connecting is False
    pc = peer_connections[0]
    assert pc.closed is True
    assert pc.remote_description is None
    assert negotiator.active is False


@pytest.mark.asyncio
async def test_close_while_waiting_for_ice_gathering(signaling, peer_connections):
    peer_connections.options["gather_delay"] = 0.5
    negotiator = TransportNegotiator(
        signaling,
        media_source_factory=FakeAudioTrack,
        relay=MagicMock(),
        ice_gathering_timeout=0.01,
    )
    connecting = asyncio.ensure_future(negotiator.connect())
    while signaling.exchange_offer.await_count == 0:
        await asyncio.sleep(0.01)
    await asyncio.sleep(0)

    await negotiator.close()

    assert await connecting is False
    assert peer_connections[0].remote_description is None
