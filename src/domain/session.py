import asyncio
import json
import logging
from collections.abc import Callable
from functools import partial
from typing import Any

from domain.errors import AlreadyConnectedError
from domain.events import TurnDetection, response_create_message, session_update_message
from domain.normalizer import TranscriptNormalizer
from domain.recognition import RecognitionFallback, DEFAULT_RESTART_DELAY_SECONDS
from domain.state import SessionState, validate_transition
from domain.transcript import CANDIDATE, Transcript, TranscriptListener
from ports.media import MicrophonePort, RemoteAudioPort
from ports.realtime import (
    DataChannelPort,
    PeerConnectionFactory,
    PeerConnectionPort,
    RealtimeCredential,
    SignalingPort,
    TokenServicePort,
)
from ports.transcriber import TranscriberPort

logger = logging.getLogger(__name__)

DATA_CHANNEL_LABEL = "oai-events"
TERMINAL_CONNECTION_STATES = frozenset({"failed", "closed", "disconnected"})

StateListener = Callable[[SessionState], None]

DEFAULT_SESSION_INSTRUCTIONS = (
    "You are an AI interviewer. Always ask exactly ONE concise question, then stop "
    "speaking and wait in silence for the candidate to answer. Do not chain multiple "
    "questions together. Only speak again after the candidate has spoken. If there is "
    "no candidate speech for ~20 seconds, give a short gentle nudge like \"Whenever you "
    "are ready, please share your answer,\" then wait again. Keep a calm pace and "
    "natural pauses."
)
DEFAULT_GREETING_INSTRUCTIONS = (
    "Start with a brief greeting, then ask the first concise question about how the "
    "candidate solved a tough technical problem. After asking, pause and wait for "
    "their response."
)


class RealtimeInterviewSession:
    def __init__(
        self,
        microphone: MicrophonePort,
        token_service: TokenServicePort,
        signaling: SignalingPort,
        peer_connection_factory: PeerConnectionFactory,
        remote_audio: RemoteAudioPort | None = None,
        transcriber: TranscriberPort | None = None,
        transcript: Transcript | None = None,
        session_instructions: str = DEFAULT_SESSION_INSTRUCTIONS,
        greeting_instructions: str = DEFAULT_GREETING_INSTRUCTIONS,
        turn_detection: TurnDetection | None = None,
        recognition_restart_delay: float = DEFAULT_RESTART_DELAY_SECONDS,
    ) -> None:
        self._microphone = microphone
        self._token_service = token_service
        self._signaling = signaling
        self._peer_connection_factory = peer_connection_factory
        self._remote_audio = remote_audio
        self._transcriber = transcriber
        self._transcript = transcript if transcript is not None else Transcript()
        self._session_instructions = session_instructions
        self._greeting_instructions = greeting_instructions
        self._turn_detection = turn_detection or TurnDetection()
        self._recognition_restart_delay = recognition_restart_delay

        self._state = SessionState.IDLE
        self._normalizer = TranscriptNormalizer()
        self._peer: PeerConnectionPort | None = None
        self._channel: DataChannelPort | None = None
        self._credential: RealtimeCredential | None = None
        self._fallback: RecognitionFallback | None = None
        self._attempt = 0
        self._state_listeners: list[StateListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state == SessionState.CONNECTED

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    @property
    def credential(self) -> RealtimeCredential | None:
        return self._credential

    def on_transcript_line(self, listener: TranscriptListener) -> None:
        self._transcript.on_line(listener)

    def on_state_change(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def _transition_to(self, target: SessionState) -> None:
        validate_transition(self._state, target)
        logger.info("State: %s -> %s", self._state.name, target.name)
        self._state = target
        for listener in list(self._state_listeners):
            try:
                listener(target)
            except Exception:
                logger.exception("State listener failed")

    async def start(self) -> None:
        if self._state.is_active:
            raise AlreadyConnectedError(
                f"Interview session is already {self._state.name.lower()}"
            )
        self._transition_to(SessionState.CONNECTING)
        self._attempt += 1
        attempt = self._attempt
        try:
            await self._negotiate(attempt)
        except (Exception, asyncio.CancelledError):
            if attempt == self._attempt and self._state.is_active:
                logger.warning("Session start failed, releasing resources")
                await self._teardown()
            raise

    async def stop(self) -> None:
        if not self._state.is_active:
            return
        await self._teardown()

    def _superseded(self, attempt: int) -> bool:
        return attempt != self._attempt or not self._state.is_active

    async def _negotiate(self, attempt: int) -> None:
        self._normalizer.reset()
        local_track = await self._microphone.open()
        if self._superseded(attempt):
            if not self._state.is_active:
                await self._microphone.close()
            logger.info("Session stopped while opening the microphone")
            return

        credential = await self._token_service.create_session()
        if self._superseded(attempt):
            logger.info("Session stopped while creating the realtime credential")
            return
        self._credential = credential

        peer = self._peer_connection_factory()
        self._peer = peer
        peer.on("track", partial(self._on_track, peer))
        peer.on("connectionstatechange", partial(self._on_connection_state_change, peer))
        peer.add_track(local_track)

        channel = peer.create_data_channel(DATA_CHANNEL_LABEL)
        self._channel = channel
        channel.on("open", partial(self._on_channel_open, channel))
        channel.on("message", partial(self._on_channel_message, channel))

        offer_sdp = await peer.create_offer()
        if self._superseded(attempt):
            await self._discard_peer(peer)
            return
        answer_sdp = await self._signaling.exchange(
            offer_sdp, credential.model, credential.value
        )
        if self._superseded(attempt):
            await self._discard_peer(peer)
            return
        await peer.set_remote_answer(answer_sdp)
        if self._superseded(attempt):
            await self._discard_peer(peer)
            return
        logger.info("Realtime session negotiated (model=%s)", credential.model)

        if self._transcriber is not None:
            self._fallback = RecognitionFallback(
                transcriber=self._transcriber,
                frames=self._microphone.frames,
                on_final=self._on_recognized,
                is_active=lambda: self._state.is_active,
                restart_delay=self._recognition_restart_delay,
            )
            self._fallback.start()

    async def _discard_peer(self, peer: PeerConnectionPort) -> None:
        logger.info("Session stopped during negotiation, closing its peer connection")
        if self._peer is peer:
            self._peer = None
            self._channel = None
        try:
            await peer.close()
        except Exception:
            logger.warning("Failed to close peer connection", exc_info=True)

    async def _teardown(self) -> None:
        peer, self._peer = self._peer, None
        self._channel = None

        fallback, self._fallback = self._fallback, None
        if fallback is not None:
            await fallback.stop()

        if self._remote_audio is not None:
            try:
                await self._remote_audio.stop()
            except Exception:
                logger.warning("Failed to stop remote audio", exc_info=True)

        try:
            await self._microphone.close()
        except Exception:
            logger.warning("Failed to release microphone", exc_info=True)

        if peer is not None:
            try:
                await peer.close()
            except Exception:
                logger.warning("Failed to close peer connection", exc_info=True)

        self._normalizer.reset()
        if self._state.is_active:
            self._transition_to(SessionState.DISCONNECTED)

    async def _on_track(self, peer: PeerConnectionPort, track: Any) -> None:
        if peer is not self._peer:
            return
        if getattr(track, "kind", None) != "audio" or self._remote_audio is None:
            return
        try:
            await self._remote_audio.attach(track)
        except Exception:
            logger.warning("Failed to attach remote audio", exc_info=True)

    async def _on_connection_state_change(self, peer: PeerConnectionPort) -> None:
        if peer is not self._peer:
            return
        state = peer.connection_state
        logger.debug("Peer connection state: %s", state)
        if state == "connected" and self._state == SessionState.CONNECTING:
            self._transition_to(SessionState.CONNECTED)
        elif state in TERMINAL_CONNECTION_STATES and self._state.is_active:
            logger.warning("Peer connection %s", state)
            await self._teardown()

    def _on_channel_open(self, channel: DataChannelPort) -> None:
        if channel is not self._channel:
            return
        try:
            channel.send(json.dumps(
                session_update_message(self._session_instructions, self._turn_detection)
            ))
            channel.send(json.dumps(response_create_message(self._greeting_instructions)))
        except Exception:
            logger.warning("Failed to send turn-taking directives", exc_info=True)

    def _on_channel_message(self, channel: DataChannelPort, message: str | bytes) -> None:
        if channel is not self._channel:
            return
        try:
            item = self._normalizer.handle_raw(message)
        except Exception:
            logger.debug("Dropping unreadable realtime event", exc_info=True)
            return
        if item is not None:
            self._transcript.add(item)

    def _on_recognized(self, text: str) -> None:
        self._transcript.append(CANDIDATE, text)
