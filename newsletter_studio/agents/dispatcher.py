"""Backend dispatch agent for the generation workflow."""

from newsletter_studio.infrastructure.error_handling import handle_node_errors
from newsletter_studio.infrastructure.logging import get_logger
from newsletter_studio.models.state import GenerationState, ProcessingStage

logger = get_logger(__name__)


@handle_node_errors(ProcessingStage.DISPATCH, error_code="BACKEND_CRASHED")
async def dispatch_generation(state: GenerationState) -> GenerationState:
    """Run the project's generation backend on the built context.

    The backend result is only stored on the state; writing it to the
    newsletter is the reconcile step's job.

    Args:
        state: Current workflow state

    Returns:
        Updated workflow state with the backend result
    """
    metadata = state["generation_metadata"]
    metadata.mark_stage_start(ProcessingStage.DISPATCH)

    backend = state["workflow_context"]["backend_factory"](state["project"])
    metadata.backend = backend.name

    logger.info(
        "Dispatching generation",
        newsletter_id=state["newsletter"].id,
        generation_id=metadata.generation_id,
        backend=backend.name,
    )

    result = await backend.run(state["context"])
    state["result"] = result

    metadata.mark_stage_end(ProcessingStage.DISPATCH)

    logger.info(
        "Backend finished",
        newsletter_id=state["newsletter"].id,
        generation_id=metadata.generation_id,
        backend=backend.name,
        succeeded=result.succeeded,
        deferred=result.deferred,
        error=result.error,
        seconds=metadata.processing_time.get(ProcessingStage.DISPATCH),
    )
    return state
