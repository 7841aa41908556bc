"""Generation node: streams the model response through the orchestrator."""
import logging
from langchain_core.runnables import RunnableConfig

from rajai_builder.errors import ConfigurationError
from rajai_builder.state import CodeFragment, GenerationRequest, GenerationState, StatusEvent, TerminalError
from rajai_builder.io import emit_progress

logger = logging.getLogger(__name__)


async def generate_app(state: GenerationState, config: RunnableConfig) -> GenerationState:
    """
    Stream one generation and forward every decoded event.

    The caller passes ``orchestrator`` and an optional ``on_event`` callback in
    ``config["configurable"]``. Status events and code fragments reach
    ``on_event`` as they arrive; a terminal failure is recorded on the state.
    """
    configurable = config.get("configurable", {})
    orchestrator = configurable["orchestrator"]
    on_event = configurable.get("on_event")

    logger.info("")
    logger.info("=" * 60)
    logger.info("APP GENERATION")
    logger.info("=" * 60)
    emit_progress(state, "GENERATING_APP", "Orchestrating agents", "info")

    request = GenerationRequest(prompt=state.prompt, request_id=state.request_id)
    try:
        async for event in orchestrator.stream(request):
            if isinstance(event, TerminalError):
                state.error = event.message
                state.error_kind = event.kind
                state.status = "error"
                emit_progress(state, "GENERATING_APP", event.message, "error", {"kind": event.kind})
                break

            if on_event is not None:
                on_event(event)

            if isinstance(event, StatusEvent):
                state.status_events += 1
                emit_progress(
                    state,
                    "AGENT_UPDATE",
                    f"{event.agent_name}: {event.message}",
                    "info",
                    {"agent": event.agent_name, "status": event.status},
                )
            elif isinstance(event, CodeFragment):
                if state.code_fragments == 0:
                    emit_progress(state, "STREAMING_CODE", "Receiving generated code", "info")
                state.code_fragments += 1
                state.generated_code += event.text
    except ConfigurationError as e:
        logger.error(f"❌ {e}")
        state.error = str(e)
        state.error_kind = "configuration"
        state.status = "error"
        emit_progress(state, "ERROR", str(e), "error")

    return state
