"""Validation node for the generation graph."""
from langchain_core.runnables import RunnableConfig

from rajai_builder.state import GenerationState
from rajai_builder.io import emit_progress


def validate_request(state: GenerationState, config: RunnableConfig) -> GenerationState:
    """Validate the prompt and the configured credential before generating."""
    emit_progress(state, "VALIDATING_REQUEST", "Starting request validation", "info")

    if not state.prompt.strip():
        state.error = "Prompt must not be empty"
        state.error_kind = "validation"
        state.status = "error"
        emit_progress(state, "VALIDATING_REQUEST", "Validation failed: empty prompt", "error")
        return state

    orchestrator = config.get("configurable", {}).get("orchestrator")
    if orchestrator is None:
        state.error = "No generation orchestrator configured"
        state.error_kind = "configuration"
        state.status = "error"
        emit_progress(state, "VALIDATING_REQUEST", state.error, "error")
        return state

    configuration_error = orchestrator.settings.configuration_error
    if configuration_error:
        state.error = configuration_error
        state.error_kind = "configuration"
        state.status = "error"
        emit_progress(state, "VALIDATING_REQUEST", "Validation failed: missing credential", "error")
        return state

    state.validation_passed = True
    emit_progress(state, "VALIDATING_REQUEST", "Validation passed", "info", {"prompt_length": len(state.prompt)})
    return state
