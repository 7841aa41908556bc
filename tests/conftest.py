"""Shared fixtures: a scripted streaming LLM and session factories."""
import asyncio
import json
from typing import List, Optional

import pytest

from rajai_builder.config import Settings
from rajai_builder.io import MemoryStore
from rajai_builder.orchestrator import GenerationOrchestrator
from rajai_builder.session import ChatSession


def status_line(agent: str, status: str, message: str) -> str:
    payload = json.dumps({"agentName": agent, "status": status, "message": message})
    return f"[AGENT_UPDATE]{payload}\n"


class FakeChunk:
    """Stands in for an AIMessageChunk."""

    def __init__(self, content):
        self.content = content


class FakeLLM:
    """Streams scripted fragments, optionally failing or pausing part way."""

    def __init__(
        self,
        fragments: List,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.fragments = fragments
        self.error = error
        self.gate = gate
        self.calls = []

    async def astream(self, messages):
        self.calls.append(messages)
        for index, fragment in enumerate(self.fragments):
            if self.gate is not None and index == 1:
                await self.gate.wait()
            yield FakeChunk(fragment)
        if self.error is not None:
            raise self.error


SCENARIO_FRAGMENTS = [
    '[AGENT_UPDATE]{',
    '"agentName":"UI/UX Agent","status":"working","message":"designing"}\n'
    '[AGENT_UPDATE]{"agentName":"UI/UX Agent","status":"complete","message":"done"}\n[CODE_',
    'START]<html></html>[CODE_END]',
]


@pytest.fixture
def settings(tmp_path):
    return Settings(api_key="test-key", store_dir=tmp_path / "store", output_dir=tmp_path / "apps")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def make_session(settings, store):
    def factory(llm=None, session_settings=None, session_store=None):
        active_settings = session_settings or settings
        orchestrator = GenerationOrchestrator(active_settings, llm=llm or FakeLLM(SCENARIO_FRAGMENTS))
        return ChatSession(
            active_settings,
            store=session_store if session_store is not None else store,
            orchestrator=orchestrator,
        )

    return factory
