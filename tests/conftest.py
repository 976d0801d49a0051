import asyncio
import inspect
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from domain.errors import MediaAccessError, SessionCreationError, SignalingError
from domain.session import RealtimeInterviewSession
from domain.transcript import Transcript
from ports.analysis import AnalysisResult, ChatReply
from ports.realtime import RealtimeCredential
from ports.transcriber import TranscriptEvent

FAKE_OFFER_SDP = "v=0\r\no=- 1 1 IN IP4 127.0.0.1\r\ns=offer\r\n"
FAKE_ANSWER_SDP = "v=0\r\no=- 2 2 IN IP4 127.0.0.1\r\ns=answer\r\n"


async def _call(handler: Callable[..., Any], *args: Any) -> None:
    result = handler(*args)
    if inspect.isawaitable(result):
        await result


class FakeEmitter:
    def __init__(self) -> None:
        self.handlers: dict[str, list[Callable[..., Any]]] = {}

    def on(self, event: str, handler: Callable[..., Any]) -> Callable[..., Any]:
        self.handlers.setdefault(event, []).append(handler)
        return handler

    async def emit(self, event: str, *args: Any) -> None:
        for handler in self.handlers.get(event, []):
            await _call(handler, *args)


class FakeDataChannel(FakeEmitter):
    def __init__(self, label: str) -> None:
        super().__init__()
        self.label = label
        self.sent: list[str] = []
        self.fail_send = False

    def send(self, data: str) -> None:
        if self.fail_send:
            raise ConnectionError("channel not open")
        self.sent.append(data)

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        return [json.loads(s) for s in self.sent]


class FakePeerConnection(FakeEmitter):
    def __init__(self) -> None:
        super().__init__()
        self._connection_state = "new"
        self.tracks: list[Any] = []
        self.channels: list[FakeDataChannel] = []
        self.remote_sdp: str | None = None
        self.closed = False

    @property
    def connection_state(self) -> str:
        return self._connection_state

    def add_track(self, track: Any) -> None:
        self.tracks.append(track)

    def create_data_channel(self, label: str) -> FakeDataChannel:
        channel = FakeDataChannel(label)
        self.channels.append(channel)
        return channel

    async def create_offer(self) -> str:
        return FAKE_OFFER_SDP

    async def set_remote_answer(self, sdp: str) -> None:
        if not sdp.startswith("v="):
            raise SignalingError("Remote answer is not a valid SDP document")
        self.remote_sdp = sdp

    async def close(self) -> None:
        self.closed = True
        await self.set_connection_state("closed")

    async def set_connection_state(self, state: str) -> None:
        self._connection_state = state
        await self.emit("connectionstatechange")


class FakeTrack:
    def __init__(self, kind: str = "audio") -> None:
        self.kind = kind
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class FakeMicrophone:
    def __init__(self, frames: list[bytes] | None = None, denied: bool = False) -> None:
        self._frames = frames or []
        self._denied = denied
        self.track: FakeTrack | None = None
        self.open_count = 0
        self.close_count = 0

    async def open(self) -> FakeTrack:
        if self._denied:
            raise MediaAccessError("Permission denied")
        self.open_count += 1
        self.track = FakeTrack()
        return self.track

    async def frames(self) -> AsyncIterator[bytes]:
        for frame in self._frames:
            yield frame
            await asyncio.sleep(0)

    async def close(self) -> None:
        self.close_count += 1
        if self.track:
            self.track.stop()


class FakeRemoteAudio:
    def __init__(self) -> None:
        self.attached: list[Any] = []
        self.stop_count = 0

    async def attach(self, track: Any) -> None:
        self.attached.append(track)

    async def stop(self) -> None:
        self.stop_count += 1


class FakeTokenService:
    def __init__(self, fail: bool = False, model: str = "gpt-4o-realtime-preview-2024-12-17") -> None:
        self._fail = fail
        self._model = model
        self.call_count = 0

    async def create_session(self) -> RealtimeCredential:
        self.call_count += 1
        if self._fail:
            raise SessionCreationError("Failed to create session", status_code=500)
        return RealtimeCredential(value="ek_test", model=self._model)


class FakeSignaling:
    def __init__(self, fail: bool = False, answer: str = FAKE_ANSWER_SDP) -> None:
        self._fail = fail
        self._answer = answer
        self.exchanges: list[tuple[str, str, str]] = []

    async def exchange(self, offer_sdp: str, model: str, token: str) -> str:
        self.exchanges.append((offer_sdp, model, token))
        if self._fail:
            raise SignalingError("SDP exchange rejected with status 401", status_code=401)
        return self._answer


class FakeTranscriber:
    def __init__(self, sessions: list[list[TranscriptEvent]] | None = None) -> None:
        self._sessions = sessions or []
        self._session_index = 0
        self._session_active = False
        self.start_count = 0
        self.close_count = 0
        self.audio_received: list[bytes] = []

    async def start_session(self) -> None:
        self._session_active = True
        self.start_count += 1

    async def send_audio(self, frame: bytes) -> None:
        self.audio_received.append(frame)

    async def get_transcripts(self) -> AsyncIterator[TranscriptEvent]:
        if self._session_index < len(self._sessions):
            events = self._sessions[self._session_index]
            self._session_index += 1
            for event in events:
                yield event
                await asyncio.sleep(0)
            return
        while self._session_active:
            await asyncio.sleep(0.01)

    async def close_session(self) -> None:
        self._session_active = False
        self.close_count += 1


class FakeAnalysis:
    def __init__(self, fail: Exception | None = None) -> None:
        self._fail = fail
        self.calls: list[tuple[str, Any]] = []

    async def chat(self, question: str, guidelines: str = "") -> ChatReply:
        self.calls.append(("chat", (question, guidelines)))
        if self._fail:
            raise self._fail
        return ChatReply(reply=f"answer to {question}", usage={"total_tokens": 10})

    async def summarize_interview(
        self, transcript: list[dict[str, Any]], role: str = "Candidate"
    ) -> AnalysisResult:
        self.calls.append(("summarize", (transcript, role)))
        if self._fail:
            raise self._fail
        return AnalysisResult(
            data={"summary": "Solid candidate", "overall_recommendation": "Hire"},
            usage={"total_tokens": 42},
        )

    async def analyze_resume(self, text: str) -> AnalysisResult:
        self.calls.append(("resume", text))
        if self._fail:
            raise self._fail
        return AnalysisResult(data={"summary": "Engineer", "skills": ["Python"]})


@pytest.fixture
def fake_microphone():
    return FakeMicrophone(frames=[b"\x00\x01" * 160 for _ in range(3)])


@pytest.fixture
def fake_peers():
    return []


@pytest.fixture
def peer_factory(fake_peers):
    def factory() -> FakePeerConnection:
        peer = FakePeerConnection()
        fake_peers.append(peer)
        return peer

    return factory


@pytest.fixture
def fake_remote_audio():
    return FakeRemoteAudio()


@pytest.fixture
def fake_token_service():
    return FakeTokenService()


@pytest.fixture
def fake_signaling():
    return FakeSignaling()


@pytest.fixture
def transcript():
    return Transcript()


@pytest.fixture
def session(fake_microphone, fake_token_service, fake_signaling, peer_factory, fake_remote_audio, transcript):
    return RealtimeInterviewSession(
        microphone=fake_microphone,
        token_service=fake_token_service,
        signaling=fake_signaling,
        peer_connection_factory=peer_factory,
        remote_audio=fake_remote_audio,
        transcript=transcript,
        recognition_restart_delay=0.01,
    )
