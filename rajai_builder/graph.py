"""LangGraph definition for one app generation."""
from typing import Literal
from langgraph.graph import StateGraph, END
from rajai_builder.state import GenerationState
from rajai_builder.nodes.validate import validate_request
from rajai_builder.nodes.generate import generate_app
from rajai_builder.nodes.package import package_output


def should_generate(state: GenerationState) -> Literal["generate_app", "package_output"]:
    """Conditional edge: skip generation when validation failed."""
    if state.validation_passed:
        return "generate_app"
    return "package_output"


def create_graph() -> StateGraph:
    """Create the generation state machine."""
    workflow = StateGraph(GenerationState)

    workflow.add_node("validate_request", validate_request)
    workflow.add_node("generate_app", generate_app)
    workflow.add_node("package_output", package_output)

    workflow.set_entry_point("validate_request")
    workflow.add_conditional_edges(
        "validate_request",
        should_generate,
        {
            "generate_app": "generate_app",
            "package_output": "package_output",
        }
    )
    workflow.add_edge("generate_app", "package_output")
    workflow.add_edge("package_output", END)

    return workflow.compile()
