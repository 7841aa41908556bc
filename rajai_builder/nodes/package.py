"""Packaging node for the generation graph."""
from rajai_builder.state import GenerationState
from rajai_builder.io import emit_progress


def package_output(state: GenerationState) -> GenerationState:
    """Settle the final status of the generation."""
    emit_progress(state, "PACKAGING_OUTPUT", "Packaging output", "info")

    if state.error:
        state.status = "error"
        emit_progress(state, "PACKAGING_OUTPUT", f"Generation failed: {state.error}", "error")
        return state

    if not state.generated_code:
        emit_progress(state, "PACKAGING_OUTPUT", "Model finished without a code block", "warning")

    state.status = "success"
    emit_progress(state, "DONE", "App generation complete", "info", {
        "agent_updates": state.status_events,
        "code_fragments": state.code_fragments,
        "code_length": len(state.generated_code),
    })
    return state
