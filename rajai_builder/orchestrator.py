"""Generation orchestrator: drives one streamed request through the demuxer."""
import logging
from typing import Any, AsyncIterator, Callable, Optional, Union
from langchain_core.messages import HumanMessage, SystemMessage

from rajai_builder.config import Settings
from rajai_builder.crew import build_system_prompt
from rajai_builder.demux import StreamDemuxer
from rajai_builder.errors import CredentialRejectedError, TransportError
from rajai_builder.llm import get_llm
from rajai_builder.state import CodeFragment, GenerationRequest, StatusEvent, TerminalError

logger = logging.getLogger(__name__)

OrchestratorEvent = Union[StatusEvent, CodeFragment, TerminalError]

INVALID_CREDENTIAL_MESSAGE = "Your Gemini API key is invalid. Please check your configuration."
CONNECTION_FAILURE_MESSAGE = (
    "Failed to communicate with the AI model. Please check your connection and try again."
)

_CREDENTIAL_REJECTED_MARKERS = ("API key not valid", "API_KEY_INVALID")


def classify_transport_error(error: BaseException) -> TransportError:
    """Map a provider/network exception onto one of the two user-facing failures."""
    if isinstance(error, TransportError):
        return error
    error_str = str(error)
    if any(marker in error_str for marker in _CREDENTIAL_REJECTED_MARKERS):
        return CredentialRejectedError(INVALID_CREDENTIAL_MESSAGE)
    return TransportError(CONNECTION_FAILURE_MESSAGE)


def chunk_text(chunk: Any) -> str:
    """Extract the text of a streamed message chunk."""
    content = getattr(chunk, "content", chunk)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return "" if content is None else str(content)


class GenerationOrchestrator:
    """
    Owns the transport for generation requests.

    Single-flight is the caller's job: the session refuses a second submit
    while one is running, so nothing is queued here.
    """

    def __init__(self, settings: Settings, llm: Optional[Any] = None):
        self.settings = settings
        self._llm = llm

    def _get_llm(self) -> Any:
        if self._llm is None:
            self._llm = get_llm(self.settings)
        return self._llm

    async def stream(self, request: GenerationRequest) -> AsyncIterator[OrchestratorEvent]:
        """
        Yield decoded events for one request in arrival order.

        A transport failure ends the sequence with exactly one TerminalError.
        Normal completion simply ends the sequence.

        Raises:
            ConfigurationError: if no credential is configured, before any
                network attempt.
        """
        self.settings.require_credential()
        llm = self._get_llm()

        logger.info(f"→ Starting generation {request.request_id} ({len(request.prompt)} character prompt)")
        messages = [
            SystemMessage(content=build_system_prompt()),
            HumanMessage(content=request.prompt),
        ]
        demuxer = StreamDemuxer(request.request_id)
        fragments = 0

        try:
            chunks = llm.astream(messages).__aiter__()
        except Exception as e:
            yield self._terminal(e, request)
            return

        while True:
            try:
                chunk = await chunks.__anext__()
            except StopAsyncIteration:
                break
            except Exception as e:
                yield self._terminal(e, request)
                return

            fragments += 1
            for event in demuxer.feed(chunk_text(chunk)):
                yield event

        for event in demuxer.finish():
            yield event
        logger.info(f"✓ Generation {request.request_id} stream ended after {fragments} fragments")

    def _terminal(self, error: Exception, request: GenerationRequest) -> TerminalError:
        logger.error(f"❌ Error generating content: {error}")
        failure = classify_transport_error(error)
        kind = "credential_rejected" if isinstance(failure, CredentialRejectedError) else "transport"
        return TerminalError(kind=kind, message=str(failure), request_id=request.request_id)

    async def start_generation(
        self,
        prompt: str,
        on_event: Callable[[OrchestratorEvent], None],
        request_id: Optional[str] = None,
    ) -> Optional[TerminalError]:
        """
        Run a generation and publish each event to on_event.

        Returns:
            The TerminalError that ended the generation, or None on success.
        """
        request = GenerationRequest(prompt=prompt, request_id=request_id) if request_id else GenerationRequest(prompt=prompt)
        async for event in self.stream(request):
            on_event(event)
            if isinstance(event, TerminalError):
                return event
        return None
