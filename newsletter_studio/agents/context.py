"""Context building agent for the generation workflow."""

from newsletter_studio.infrastructure.error_handling import handle_node_errors
from newsletter_studio.infrastructure.logging import get_logger
from newsletter_studio.models.state import GenerationState, ProcessingStage

logger = get_logger(__name__)


@handle_node_errors(ProcessingStage.CONTEXT, error_code="CONTEXT_BUILD_FAILED")
async def build_generation_context(state: GenerationState) -> GenerationState:
    """Assemble project settings, project data, links and notes.

    Args:
        state: Current workflow state

    Returns:
        Updated workflow state with the generation context
    """
    state["generation_metadata"].mark_stage_start(ProcessingStage.CONTEXT)

    builder = state["workflow_context"]["context_builder"]
    state["context"] = await builder.build(state["newsletter"], state["project"])

    state["generation_metadata"].mark_stage_end(ProcessingStage.CONTEXT)

    logger.info(
        "Generation context ready",
        newsletter_id=state["newsletter"].id,
        generation_id=state["generation_metadata"].generation_id,
        links=len(state["context"].links),
        spreadsheets=len(state["context"].project_data),
    )
    return state
