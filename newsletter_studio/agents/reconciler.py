"""Result reconciliation agents for the generation workflow."""

from newsletter_studio.infrastructure.logging import get_logger
from newsletter_studio.models.newsletter import GenerationResult
from newsletter_studio.models.state import GenerationState, ProcessingStage

logger = get_logger(__name__)


async def reconcile_result(state: GenerationState) -> GenerationState:
    """Commit the backend result unless the generation was superseded.

    Storage errors propagate to the caller.
    """
    metadata = state["generation_metadata"]
    metadata.mark_stage_start(ProcessingStage.RECONCILE)

    reconciler = state["workflow_context"]["reconciler"]
    state["outcome"] = await reconciler.commit(
        state["newsletter"].id,
        metadata.generation_id,
        state["result"],
    )

    metadata.mark_stage_end(ProcessingStage.RECONCILE)
    return state


async def handle_generation_failure(state: GenerationState) -> GenerationState:
    """Record errors raised before a backend result existed as a failed generation."""
    message = "; ".join(error.message for error in state["errors"]) or "Unknown generation error"
    logger.error(
        "Generation failed before a backend result",
        newsletter_id=state["newsletter"].id,
        generation_id=state["generation_metadata"].generation_id,
        errors=[str(error) for error in state["errors"]],
    )

    state["result"] = GenerationResult.failure(message)
    return await reconcile_result(state)
