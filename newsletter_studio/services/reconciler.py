"""Generation lifecycle state machine for newsletters.

    draft | final | error --request--> generating
    generating --success--> final
    generating --failure--> error
    generating --cancel--> draft

Every transition is a single conditional UPDATE. A backend result is
committed only if the newsletter is still ``generating`` under the same
generation id that dispatched it; otherwise the result is dropped and the
current status stands. Cancelling therefore always wins once applied.
"""

import uuid
from typing import Optional

from newsletter_studio.infrastructure.database import Database
from newsletter_studio.infrastructure.error_handling import (
    GenerationConflictError,
    GenerationValidationError,
    NewsletterNotFoundError,
)
from newsletter_studio.infrastructure.logging import LoggerMixin
from newsletter_studio.models.newsletter import (
    GenerationResult,
    NewsletterStatus,
    ReconcileOutcome,
)

WEBHOOK_ERROR_PREFIX = "Webhook error: "


class GenerationReconciler(LoggerMixin):
    """Applies generation lifecycle transitions to newsletter records."""

    def __init__(self, database: Database):
        self.database = database

    async def request_generation(self, newsletter_id: str) -> str:
        """Enter ``generating`` and return the new generation id.

        Raises:
            NewsletterNotFoundError: unknown newsletter
            GenerationConflictError: a generation is already running
        """
        generation_id = str(uuid.uuid4())
        if not await self.database.begin_generation(newsletter_id, generation_id):
            await self._require_newsletter(newsletter_id)
            raise GenerationConflictError("Newsletter is already generating")

        self.logger.info("Generation started", newsletter_id=newsletter_id, generation_id=generation_id)
        return generation_id

    async def commit(
        self,
        newsletter_id: str,
        generation_id: Optional[str],
        result: GenerationResult,
    ) -> ReconcileOutcome:
        """Write a backend result if its generation is still the current one."""
        if result.deferred:
            self.logger.info(
                "Generation result deferred to callback",
                newsletter_id=newsletter_id,
                generation_id=generation_id,
            )
            return ReconcileOutcome.DEFERRED

        if result.succeeded:
            applied = await self.database.complete_generation(
                newsletter_id,
                result.html_content,
                result.text_content,
                generation_id=generation_id,
            )
            outcome = ReconcileOutcome.COMMITTED
        else:
            applied = await self.database.fail_generation(
                newsletter_id,
                result.error or "Unknown generation error",
                generation_id=generation_id,
            )
            outcome = ReconcileOutcome.FAILED

        if not applied:
            self.logger.info(
                "Discarded stale generation result",
                newsletter_id=newsletter_id,
                generation_id=generation_id,
                result="success" if result.succeeded else "failure",
            )
            return ReconcileOutcome.DISCARDED

        self.logger.info(
            "Generation result committed",
            newsletter_id=newsletter_id,
            generation_id=generation_id,
            outcome=outcome.value,
            error=result.error,
        )
        return outcome

    async def cancel(self, newsletter_id: str) -> None:
        """Move a generating newsletter back to draft.

        Raises:
            NewsletterNotFoundError: unknown newsletter
            GenerationConflictError: the newsletter is not generating
        """
        if not await self.database.cancel_generation(newsletter_id):
            newsletter = await self._require_newsletter(newsletter_id)
            raise GenerationConflictError(
                f"Newsletter is not generating (status: {newsletter.status})"
            )
        self.logger.info("Generation cancelled", newsletter_id=newsletter_id)

    async def apply_callback(
        self,
        newsletter_id: str,
        html_content: Optional[str] = None,
        text_content: Optional[str] = None,
        error: Optional[str] = None,
    ) -> ReconcileOutcome:
        """Apply a result delivered out-of-band by a webhook backend.

        Returns ``DISCARDED`` without writing when the newsletter is no
        longer generating.

        Raises:
            NewsletterNotFoundError: unknown newsletter
            GenerationValidationError: success callback without both contents
        """
        newsletter = await self._require_newsletter(newsletter_id)
        if newsletter.status != NewsletterStatus.GENERATING.value:
            self.logger.info(
                "Callback ignored, newsletter no longer generating",
                newsletter_id=newsletter_id,
                status=newsletter.status,
            )
            return ReconcileOutcome.DISCARDED

        if error:
            result = GenerationResult.failure(f"{WEBHOOK_ERROR_PREFIX}{error}")
        elif not html_content or not text_content:
            raise GenerationValidationError(["html_content and text_content are required"])
        else:
            result = GenerationResult.success(html_content, text_content)

        return await self.commit(newsletter_id, None, result)

    async def _require_newsletter(self, newsletter_id: str):
        newsletter = await self.database.get_newsletter(newsletter_id)
        if newsletter is None:
            raise NewsletterNotFoundError(f"Newsletter not found: {newsletter_id}")
        return newsletter
