import logging
from collections.abc import Callable, Sequence
from typing import Any

from aiortc import (
    RTCConfiguration,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.sdp import SessionDescription

from domain.errors import SignalingError

logger = logging.getLogger(__name__)

DEFAULT_ICE_SERVERS = ("stun:stun.l.google.com:19302",)


class AiortcPeerConnection:
    def __init__(self, ice_servers: Sequence[str] = DEFAULT_ICE_SERVERS) -> None:
        configuration = RTCConfiguration(
            iceServers=[RTCIceServer(urls=list(ice_servers))] if ice_servers else []
        )
        self._pc = RTCPeerConnection(configuration=configuration)

    @property
    def connection_state(self) -> str:
        return self._pc.connectionState

    def on(self, event: str, handler: Callable[..., Any]) -> Any:
        return self._pc.on(event, handler)

    def add_track(self, track: Any) -> None:
        self._pc.addTrack(track)

    def create_data_channel(self, label: str) -> Any:
        return self._pc.createDataChannel(label, ordered=True)

    async def create_offer(self) -> str:
        if not any(t.kind == "audio" for t in self._pc.getTransceivers()):
            self._pc.addTransceiver("audio", direction="recvonly")
        offer = await self._pc.createOffer()
        await self._pc.setLocalDescription(offer)
        return self._pc.localDescription.sdp

    async def set_remote_answer(self, sdp: str) -> None:
        if not sdp or not sdp.strip().startswith("v="):
            raise SignalingError("Remote answer is not a valid SDP document")
        try:
            SessionDescription.parse(sdp)
        except Exception as exc:
            raise SignalingError(f"Malformed SDP answer: {exc}") from exc
        await self._pc.setRemoteDescription(RTCSessionDescription(sdp=sdp, type="answer"))

    async def close(self) -> None:
        await self._pc.close()


def create_peer_connection_factory(
    ice_servers: Sequence[str] = DEFAULT_ICE_SERVERS,
) -> Callable[[], AiortcPeerConnection]:
    def factory() -> AiortcPeerConnection:
        logger.debug("Creating peer connection (ice=%s)", ", ".join(ice_servers))
        return AiortcPeerConnection(ice_servers=ice_servers)

    return factory
