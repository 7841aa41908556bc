"""Tests for the generation orchestrator."""
import pytest
from langchain_core.messages import HumanMessage, SystemMessage

from rajai_builder.config import Settings
from rajai_builder.errors import ConfigurationError, CredentialRejectedError, TransportError
from rajai_builder.orchestrator import (
    CONNECTION_FAILURE_MESSAGE,
    INVALID_CREDENTIAL_MESSAGE,
    GenerationOrchestrator,
    chunk_text,
    classify_transport_error,
)
from rajai_builder.state import CodeFragment, GenerationRequest, StatusEvent, TerminalError
from tests.conftest import SCENARIO_FRAGMENTS, FakeChunk, FakeLLM, status_line


async def collect(orchestrator, prompt="todo app", request_id="req-1"):
    return [event async for event in orchestrator.stream(GenerationRequest(prompt=prompt, request_id=request_id))]


class TestStream:
    """GenerationOrchestrator.stream"""

    @pytest.mark.asyncio
    async def test_events_in_arrival_order(self, settings):
        orchestrator = GenerationOrchestrator(settings, llm=FakeLLM(SCENARIO_FRAGMENTS))
        events = await collect(orchestrator)

        assert [type(event) for event in events] == [StatusEvent, StatusEvent, CodeFragment]
        assert events[1].status == "complete"
        assert events[2].text == "<html></html>"
        assert all(event.request_id == "req-1" for event in events)

    @pytest.mark.asyncio
    async def test_sends_system_instruction_and_prompt(self, settings):
        llm = FakeLLM(SCENARIO_FRAGMENTS)
        await collect(GenerationOrchestrator(settings, llm=llm), prompt="weather dashboard")

        system, human = llm.calls[0]
        assert isinstance(system, SystemMessage)
        assert "[AGENT_UPDATE]" in system.content
        assert "[CODE_START]" in system.content and "[CODE_END]" in system.content
        assert "Testing Agent" in system.content
        assert isinstance(human, HumanMessage)
        assert human.content == "weather dashboard"

    @pytest.mark.asyncio
    async def test_missing_credential_fails_before_transport(self):
        llm = FakeLLM(SCENARIO_FRAGMENTS)
        orchestrator = GenerationOrchestrator(Settings(api_key=None), llm=llm)

        with pytest.raises(ConfigurationError):
            await collect(orchestrator)
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_transport_failure_ends_with_one_terminal_error(self, settings):
        llm = FakeLLM([status_line("UI/UX Agent", "working", "x")], error=ConnectionError("reset by peer"))
        events = await collect(GenerationOrchestrator(settings, llm=llm))

        assert isinstance(events[0], StatusEvent)
        assert isinstance(events[-1], TerminalError)
        assert sum(isinstance(event, TerminalError) for event in events) == 1
        assert events[-1].kind == "transport"
        assert events[-1].message == CONNECTION_FAILURE_MESSAGE

    @pytest.mark.asyncio
    async def test_rejected_credential_has_its_own_message(self, settings):
        llm = FakeLLM([], error=Exception("400 API key not valid. Please pass a valid API key."))
        events = await collect(GenerationOrchestrator(settings, llm=llm))

        assert events == [TerminalError(kind="credential_rejected", message=INVALID_CREDENTIAL_MESSAGE, request_id="req-1")]

    @pytest.mark.asyncio
    async def test_trailing_code_is_flushed_at_end_of_stream(self, settings):
        llm = FakeLLM(["[CODE_START]<p>", "unterminated"])
        events = await collect(GenerationOrchestrator(settings, llm=llm))
        assert "".join(event.text for event in events) == "<p>unterminated"

    @pytest.mark.asyncio
    async def test_list_content_chunks(self, settings):
        llm = FakeLLM([[{"type": "text", "text": "[CODE_START]hi"}], ["[CODE_END]"]])
        events = await collect(GenerationOrchestrator(settings, llm=llm))
        assert events == [CodeFragment(text="hi", request_id="req-1")]


class TestStartGeneration:
    """GenerationOrchestrator.start_generation"""

    @pytest.mark.asyncio
    async def test_callback_receives_every_event(self, settings):
        received = []
        orchestrator = GenerationOrchestrator(settings, llm=FakeLLM(SCENARIO_FRAGMENTS))

        result = await orchestrator.start_generation("todo app", received.append, request_id="r")

        assert result is None
        assert len(received) == 3
        assert {event.request_id for event in received} == {"r"}

    @pytest.mark.asyncio
    async def test_returns_terminal_error(self, settings):
        received = []
        orchestrator = GenerationOrchestrator(settings, llm=FakeLLM([], error=TimeoutError()))

        result = await orchestrator.start_generation("todo app", received.append)

        assert isinstance(result, TerminalError)
        assert received == [result]


class TestHelpers:
    def test_classify_credential_rejected(self):
        error = classify_transport_error(Exception("API_KEY_INVALID"))
        assert isinstance(error, CredentialRejectedError)
        assert str(error) == INVALID_CREDENTIAL_MESSAGE

    def test_classify_generic(self):
        error = classify_transport_error(OSError("network unreachable"))
        assert type(error) is TransportError
        assert str(error) == CONNECTION_FAILURE_MESSAGE

    def test_chunk_text(self):
        assert chunk_text(FakeChunk("abc")) == "abc"
        assert chunk_text(FakeChunk(["a", {"type": "text", "text": "b"}, {"type": "image_url"}])) == "ab"
        assert chunk_text(FakeChunk(None)) == ""
