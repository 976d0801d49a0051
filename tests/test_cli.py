import argparse
import asyncio
import json

import pytest

import cli
from config import InterviewerConfig
from conftest import FakeMicrophone, FakeSignaling, FakeTokenService
from domain.session import RealtimeInterviewSession


def _args(**overrides):
    values = dict(summarize=False, save=None, role="Candidate", server=None)
    values.update(overrides)
    return argparse.Namespace(**values)


def _session(peer_factory, microphone=None):
    return RealtimeInterviewSession(
        microphone=microphone or FakeMicrophone(),
        token_service=FakeTokenService(),
        signaling=FakeSignaling(),
        peer_connection_factory=peer_factory,
    )


async def _settle():
    for _ in range(10):
        await asyncio.sleep(0)


class TestConductInterview:
    @pytest.mark.asyncio
    async def test_exits_when_connection_drops(self, peer_factory, fake_peers):
        session = _session(peer_factory)
        task = asyncio.create_task(
            cli._conduct_interview(session, _args(), InterviewerConfig())
        )
        await _settle()
        assert not task.done()

        await fake_peers[0].set_connection_state("failed")

        assert await asyncio.wait_for(task, timeout=1.0) == 0
        assert fake_peers[0].closed

    @pytest.mark.asyncio
    async def test_start_failure_returns_error(self, peer_factory):
        session = _session(peer_factory, microphone=FakeMicrophone(denied=True))
        assert await cli._conduct_interview(session, _args(), InterviewerConfig()) == 1

    @pytest.mark.asyncio
    async def test_dropped_call_still_saves_transcript(
        self, monkeypatch, peer_factory, fake_peers
    ):
        saved = []

        async def fake_save(client, interview_id, transcript, analysis):
            saved.append((interview_id, transcript.to_dicts()))

        monkeypatch.setattr(cli, "_save", fake_save)
        session = _session(peer_factory)
        task = asyncio.create_task(
            cli._conduct_interview(session, _args(save="abc"), InterviewerConfig())
        )
        await _settle()

        channel = fake_peers[0].channels[0]
        await channel.emit("message", json.dumps({
            "type": "conversation.item.created",
            "item": {"role": "user", "content": [{"text": "I shipped it"}]},
        }))
        await fake_peers[0].set_connection_state("disconnected")

        assert await asyncio.wait_for(task, timeout=1.0) == 0
        assert saved[0][0] == "abc"
        assert saved[0][1][0]["text"] == "I shipped it"
