"""
WebRTC negotiation with the realtime endpoint.

TransportNegotiator owns the peer connection, the control data channel and
the local microphone track of one session. It produces an SDP offer, trades
it for an answer through the signaling relay and reports transport events to
its owner through plain callbacks.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from aiortc import (
    MediaStreamTrack,
    RTCConfiguration,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.contrib.media import MediaRelay

from meeting_agent.config.constants import (
    DATA_CHANNEL_LABEL,
    DEFAULT_ICE_SERVERS,
    ICE_GATHERING_TIMEOUT,
    LOGGER_NAME,
)
from meeting_agent.errors import RealtimeSessionError, TransportError
from meeting_agent.services.agent_service_client import AgentServiceClient
from meeting_agent.session.media import MicrophoneStreamTrack

logger = logging.getLogger(LOGGER_NAME)


class TransportNegotiator:
    """
    Negotiates and owns the transport of a single session.
    """

    def __init__(
        self,
        signaling: AgentServiceClient,
        agent_id: Optional[int] = None,
        ice_servers: Optional[List[str]] = None,
        media_source_factory: Callable[[], MediaStreamTrack] = MicrophoneStreamTrack,
        relay: Optional[MediaRelay] = None,
        ice_gathering_timeout: float = ICE_GATHERING_TIMEOUT,
    ):
        """
        Args:
            signaling: Client for the signaling relay
            agent_id: Agent configuration forwarded with the offer
            ice_servers: STUN/TURN URLs, Google's public STUN server by default
            media_source_factory: Callable returning the local audio track
            relay: Relay used to share the local track with other consumers
            ice_gathering_timeout: Maximum seconds to wait for ICE gathering
        """
        self.signaling = signaling
        self.agent_id = agent_id
        self.ice_servers = ice_servers if ice_servers is not None else list(DEFAULT_ICE_SERVERS)
        self.media_source_factory = media_source_factory
        self.relay = relay or MediaRelay()
        self.ice_gathering_timeout = ice_gathering_timeout

        self.pc: Optional[RTCPeerConnection] = None
        self.data_channel = None
        self.local_track: Optional[MediaStreamTrack] = None
        self.remote_track: Optional[MediaStreamTrack] = None
        self._gather_task: Optional[asyncio.Task] = None

        self.on_state_change: Optional[Callable[[str], None]] = None
        self.on_track: Optional[Callable[[MediaStreamTrack], None]] = None
        self.on_channel_open: Optional[Callable[[], None]] = None
        self.on_channel_message: Optional[Callable[[Union[str, bytes]], None]] = None
        self.on_channel_close: Optional[Callable[[], None]] = None

    def set_handlers(
        self,
        on_state_change: Optional[Callable[[str], None]] = None,
        on_track: Optional[Callable[[MediaStreamTrack], None]] = None,
        on_channel_open: Optional[Callable[[], None]] = None,
        on_channel_message: Optional[Callable[[Union[str, bytes]], None]] = None,
        on_channel_close: Optional[Callable[[], None]] = None,
    ) -> None:
        """Set callbacks for transport events."""
        self.on_state_change = on_state_change
        self.on_track = on_track
        self.on_channel_open = on_channel_open
        self.on_channel_message = on_channel_message
        self.on_channel_close = on_channel_close

    @property
    def active(self) -> bool:
        return self.pc is not None

    @property
    def channel_open(self) -> bool:
        return self.data_channel is not None and self.data_channel.readyState == "open"

    def _configuration(self) -> RTCConfiguration:
        return RTCConfiguration(iceServers=[RTCIceServer(urls=url) for url in self.ice_servers])

    async def connect(self) -> bool:
        """
        Negotiate a new transport.

        Returns:
            bool: False if a transport already exists or close() ran while
                negotiating, True once the remote answer has been applied

        Raises:
            MediaAcquisitionError: If the microphone cannot be opened
            SignalingError: If the offer/answer exchange fails
            TransportError: If the peer connection rejects a description
        """
        if self.pc is not None:
            logger.info("Transport already exists, ignoring connect")
            return False

        pc = None
        try:
            self.local_track = self.media_source_factory()

            pc = RTCPeerConnection(configuration=self._configuration())
            self.pc = pc
            self._wire_peer_connection(pc)
            pc.addTrack(self.relay.subscribe(self.local_track))

            # The channel must be part of the offer
            self.data_channel = pc.createDataChannel(DATA_CHANNEL_LABEL)
            self._wire_data_channel(self.data_channel)

            offer = await pc.createOffer()
            if self._superseded(pc):
                return False
            local_sdp = await self._set_local_description(pc, offer)
            if self._superseded(pc):
                return False

            answer_sdp = await self.signaling.exchange_offer(local_sdp, self.agent_id)
            if self._superseded(pc):
                return False

            gather_task = self._gather_task
            if gather_task is not None:
                # asyncio.wait does not raise if close() cancels the task
                await asyncio.wait({gather_task})
                if self._superseded(pc):
                    return False
                gather_task.result()
                self._gather_task = None
            await pc.setRemoteDescription(RTCSessionDescription(sdp=answer_sdp, type="answer"))
            if self._superseded(pc):
                return False
            logger.info("Remote answer applied")
            return True
        except Exception as e:
            if pc is not None and self._superseded(pc):
                logger.info(f"Ignoring negotiation error after close: {e}")
                return False
            if isinstance(e, RealtimeSessionError):
                await self.close()
                raise
            logger.error(f"Transport negotiation failed: {e}", exc_info=True)
            await self.close()
            raise TransportError(f"Transport negotiation failed: {e}") from e

    def _superseded(self, pc: RTCPeerConnection) -> bool:
        """True if close() ran after pc was created."""
        if pc is self.pc:
            return False
        logger.info("Transport closed during negotiation, abandoning connect")
        return True

    async def _set_local_description(self, pc: RTCPeerConnection, offer: RTCSessionDescription) -> str:
        """
        Apply the local offer, waiting at most ice_gathering_timeout for ICE gathering.

        aiortc gathers every candidate before setLocalDescription returns, so
        on timeout the offer from createOffer() is sent without candidates.

        Returns:
            str: The finalized SDP, or the candidate-less offer on timeout
        """
        task = asyncio.ensure_future(pc.setLocalDescription(offer))
        done, _ = await asyncio.wait({task}, timeout=self.ice_gathering_timeout)
        if task in done:
            task.result()
            return pc.localDescription.sdp

        logger.warning(
            f"ICE gathering not complete after {self.ice_gathering_timeout}s, "
            f"sending offer without ICE candidates"
        )
        self._gather_task = task
        return offer.sdp

    def _wire_peer_connection(self, pc: RTCPeerConnection) -> None:
        @pc.on("connectionstatechange")
        def on_connectionstatechange():
            if pc is not self.pc:
                return
            state = pc.connectionState
            logger.info(f"Connection state: {state}")
            if self.on_state_change:
                self.on_state_change(state)

        @pc.on("track")
        def on_track(track):
            if pc is not self.pc:
                return
            logger.info(f"Remote {track.kind} track received")
            if track.kind != "audio":
                return
            self.remote_track = track
            if self.on_track:
                self.on_track(track)

    def _wire_data_channel(self, channel) -> None:
        @channel.on("open")
        def on_open():
            if channel is not self.data_channel:
                return
            logger.info(f"Data channel '{channel.label}' opened")
            if self.on_channel_open:
                self.on_channel_open()

        @channel.on("message")
        def on_message(message):
            if channel is not self.data_channel:
                logger.debug("Dropping message from a closed data channel")
                return
            if self.on_channel_message:
                self.on_channel_message(message)

        @channel.on("close")
        def on_close():
            if channel is not self.data_channel:
                return
            logger.info(f"Data channel '{channel.label}' closed")
            if self.on_channel_close:
                self.on_channel_close()

    def send(self, message: Union[str, Dict[str, Any]]) -> bool:
        """
        Send a control message on the data channel.

        Returns:
            bool: False if the channel is not open
        """
        if not self.channel_open:
            logger.warning("Data channel not open, dropping outbound message")
            return False
        payload = message if isinstance(message, str) else json.dumps(message)
        self.data_channel.send(payload)
        return True

    async def close(self) -> None:
        """
        Release the transport. Safe to call repeatedly and when never connected.

        Closes the data channel, then the peer connection, then stops the
        local track. References are detached first so a re-entrant close
        from a state change callback is a no-op.
        """
        pc, channel, local_track, gather_task = (
            self.pc,
            self.data_channel,
            self.local_track,
            self._gather_task,
        )
        self.pc = None
        self.data_channel = None
        self.local_track = None
        self.remote_track = None
        self._gather_task = None

        if gather_task is not None and not gather_task.done():
            gather_task.cancel()

        if channel is not None:
            try:
                channel.close()
            except Exception as e:
                logger.warning(f"Error closing data channel: {e}")

        if pc is not None:
            try:
                await pc.close()
            except Exception as e:
                logger.warning(f"Error closing peer connection: {e}")

        if local_track is not None:
            local_track.stop()

        if pc is not None:
            logger.info("Transport closed")
