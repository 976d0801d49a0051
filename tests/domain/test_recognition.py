import asyncio

import pytest

from conftest import FakeTranscriber
from domain.recognition import RecognitionFallback
from ports.transcriber import TranscriptEvent


async def _frames():
    for _ in range(3):
        yield b"\x00\x00" * 160
        await asyncio.sleep(0)


class _FailingTranscriber(FakeTranscriber):
    def __init__(self) -> None:
        super().__init__()
        self.failures = 0

    async def start_session(self) -> None:
        self.failures += 1
        raise ConnectionError("recognizer unavailable")


def _fallback(transcriber, finals, active=lambda: True):
    return RecognitionFallback(
        transcriber=transcriber,
        frames=_frames,
        on_final=finals.append,
        is_active=active,
        restart_delay=0.01,
    )


@pytest.mark.asyncio
async def test_only_final_non_empty_results_are_forwarded():
    transcriber = FakeTranscriber(sessions=[[
        TranscriptEvent(text="partial", is_final=False),
        TranscriptEvent(text="   ", is_final=True),
        TranscriptEvent(text=" done ", is_final=True),
    ]])
    finals = []
    fallback = _fallback(transcriber, finals)
    fallback.start()
    await asyncio.sleep(0.05)
    await fallback.stop()

    assert finals == ["done"]


@pytest.mark.asyncio
async def test_restarts_after_recognizer_ends():
    transcriber = FakeTranscriber(sessions=[
        [TranscriptEvent(text="first", is_final=True)],
        [TranscriptEvent(text="second", is_final=True)],
    ])
    finals = []
    fallback = _fallback(transcriber, finals)
    fallback.start()
    await asyncio.sleep(0.1)
    await fallback.stop()

    assert finals == ["first", "second"]
    assert fallback.restarts >= 2
    assert transcriber.start_count >= 3


@pytest.mark.asyncio
async def test_errors_are_retried():
    transcriber = _FailingTranscriber()
    fallback = _fallback(transcriber, [])
    fallback.start()
    await asyncio.sleep(0.05)
    await fallback.stop()

    assert transcriber.failures >= 2
    assert not fallback.running


@pytest.mark.asyncio
async def test_does_not_run_when_session_inactive():
    transcriber = FakeTranscriber()
    fallback = _fallback(transcriber, [], active=lambda: False)
    fallback.start()
    await asyncio.sleep(0.02)

    assert transcriber.start_count == 0
    assert not fallback.running


@pytest.mark.asyncio
async def test_stops_restarting_once_session_ends():
    state = {"active": True}

    def on_final(text):
        state["active"] = False

    transcriber = FakeTranscriber(sessions=[[TranscriptEvent(text="bye", is_final=True)]])
    fallback = RecognitionFallback(
        transcriber=transcriber,
        frames=_frames,
        on_final=on_final,
        is_active=lambda: state["active"],
        restart_delay=0.01,
    )
    fallback.start()
    await asyncio.sleep(0.05)

    assert not fallback.running
    assert fallback.restarts == 0
    assert transcriber.start_count == 1
    await fallback.stop()


@pytest.mark.asyncio
async def test_feeds_microphone_frames():
    transcriber = FakeTranscriber()
    fallback = _fallback(transcriber, [])
    fallback.start()
    await asyncio.sleep(0.02)
    await fallback.stop()

    assert len(transcriber.audio_received) == 3
