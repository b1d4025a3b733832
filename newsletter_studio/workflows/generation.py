"""Newsletter generation workflow using LangGraph."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from langgraph.graph import StateGraph, START, END

from newsletter_studio.infrastructure.logging import generation_log_context, get_logger
from newsletter_studio.models.newsletter import NewsletterRecord, ProjectSettings
from newsletter_studio.models.state import (
    GenerationState,
    ProcessingStage,
    create_initial_state,
    has_critical_errors,
)

logger = get_logger(__name__)

_compiled_workflow = None


def create_generation_workflow() -> StateGraph:
    """Create the generation workflow.

    build_context -> dispatch -> reconcile, with a failure node that
    records errors raised before a backend result exists.

    Returns:
        Configured LangGraph StateGraph for newsletter generation
    """
    workflow = StateGraph(GenerationState)

    from newsletter_studio.agents import (
        build_generation_context,
        dispatch_generation,
        handle_generation_failure,
        reconcile_result,
    )

    workflow.add_node("build_context", build_generation_context)
    workflow.add_node("dispatch", dispatch_generation)
    workflow.add_node("reconcile", reconcile_result)
    workflow.add_node("handle_failure", handle_generation_failure)

    workflow.add_edge(START, "build_context")

    workflow.add_conditional_edges(
        "build_context",
        _route_after_context,
        {
            "dispatch": "dispatch",
            "fail": "handle_failure",
        }
    )

    workflow.add_conditional_edges(
        "dispatch",
        _route_after_dispatch,
        {
            "reconcile": "reconcile",
            "fail": "handle_failure",
        }
    )

    workflow.add_edge("reconcile", END)
    workflow.add_edge("handle_failure", END)

    return workflow


def _route_after_context(state: GenerationState) -> str:
    """Route after context building."""
    if has_critical_errors(state) or state.get("context") is None:
        return "fail"
    return "dispatch"


def _route_after_dispatch(state: GenerationState) -> str:
    """Route after the backend call."""
    if has_critical_errors(state) or state.get("result") is None:
        return "fail"
    return "reconcile"


def get_compiled_workflow():
    """Compiled workflow, built once per process."""
    global _compiled_workflow
    if _compiled_workflow is None:
        _compiled_workflow = create_generation_workflow().compile()
    return _compiled_workflow


async def run_generation_workflow(
    newsletter: NewsletterRecord,
    project: ProjectSettings,
    generation_id: str,
    workflow_context: Dict[str, Any],
) -> GenerationState:
    """Run one generation attempt end to end.

    Args:
        newsletter: Newsletter being generated (already ``generating``)
        project: Parent project settings
        generation_id: Id minted when the newsletter entered ``generating``
        workflow_context: Collaborators used by the nodes

    Returns:
        Final workflow state with the backend result and reconcile outcome
    """
    logger.info(
        "Starting generation workflow",
        newsletter_id=newsletter.id,
        project_id=project.id,
        generation_id=generation_id,
    )

    initial_state = create_initial_state(newsletter, project, generation_id, workflow_context)
    with generation_log_context(newsletter.id, generation_id):
        final_state = await get_compiled_workflow().ainvoke(initial_state)

    metadata = final_state["generation_metadata"]
    metadata.end_time = datetime.now(timezone.utc)
    metadata.current_stage = (
        ProcessingStage.FAILED if has_critical_errors(final_state) else ProcessingStage.COMPLETED
    )

    outcome: Optional[str] = final_state["outcome"].value if final_state.get("outcome") else None
    logger.info(
        "Generation workflow finished",
        newsletter_id=newsletter.id,
        generation_id=generation_id,
        backend=metadata.backend,
        outcome=outcome,
        errors=[str(error) for error in final_state["errors"]],
        processing_time=metadata.total_processing_time,
    )
    return final_state
