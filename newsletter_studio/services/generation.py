"""Newsletter generation service: the entry point for every lifecycle action."""

from typing import Callable, Optional, Tuple

from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.database import Database
from newsletter_studio.infrastructure.error_handling import (
    GenerationConflictError,
    NewsletterNotFoundError,
    ProjectNotFoundError,
)
from newsletter_studio.infrastructure.logging import LoggerMixin
from newsletter_studio.models.newsletter import (
    CallbackPayload,
    NewsletterRecord,
    NewsletterUpdate,
    ProjectSettings,
    ReconcileOutcome,
)
from newsletter_studio.models.state import GenerationState
from newsletter_studio.services.backends import GenerationBackend, select_backend
from newsletter_studio.services.context_builder import ContextBuilder, validate_generation_inputs
from newsletter_studio.services.reconciler import GenerationReconciler
from newsletter_studio.workflows.generation import run_generation_workflow

BackendFactory = Callable[[ProjectSettings], GenerationBackend]


class GenerationService(LoggerMixin):
    """Validates, starts, runs, cancels and completes newsletter generations."""

    def __init__(
        self,
        database: Database,
        config: Optional[ApplicationConfig] = None,
        backend_factory: Optional[BackendFactory] = None,
    ):
        self.database = database
        self.config = config or ApplicationConfig()
        self.reconciler = GenerationReconciler(database)
        self.context_builder = ContextBuilder(database, row_limit=self.config.context_row_limit)
        self.backend_factory = backend_factory or self._default_backend

    def _default_backend(self, project: ProjectSettings) -> GenerationBackend:
        return select_backend(project, self.config)

    async def get_newsletter(self, newsletter_id: str) -> NewsletterRecord:
        newsletter = await self.database.get_newsletter(newsletter_id)
        if newsletter is None:
            raise NewsletterNotFoundError(f"Newsletter not found: {newsletter_id}")
        return NewsletterRecord.model_validate(newsletter)

    async def load(self, newsletter_id: str) -> Tuple[NewsletterRecord, ProjectSettings]:
        """Newsletter and its parent project."""
        newsletter = await self.get_newsletter(newsletter_id)
        project = await self.database.get_project(newsletter.project_id)
        if project is None:
            raise ProjectNotFoundError(f"Project not found: {newsletter.project_id}")
        return newsletter, ProjectSettings.model_validate(project)

    async def request_generation(self, newsletter_id: str) -> str:
        """Validate inputs, then move the newsletter to ``generating``.

        Nothing is written when validation fails.

        Returns:
            Generation id of the new attempt

        Raises:
            GenerationValidationError: blank title or unusable links
            GenerationConflictError: already generating
        """
        newsletter = await self.get_newsletter(newsletter_id)
        if newsletter.is_generating:
            raise GenerationConflictError("Newsletter is already generating")
        validate_generation_inputs(newsletter.title, newsletter.links_raw)
        return await self.reconciler.request_generation(newsletter_id)

    async def run_generation(self, newsletter_id: str, generation_id: str) -> GenerationState:
        """Build context, call the backend and reconcile the result."""
        newsletter, project = await self.load(newsletter_id)
        return await run_generation_workflow(
            newsletter,
            project,
            generation_id,
            workflow_context={
                "context_builder": self.context_builder,
                "backend_factory": self.backend_factory,
                "reconciler": self.reconciler,
            },
        )

    async def generate(self, newsletter_id: str) -> GenerationState:
        """Request and run a generation in one call."""
        generation_id = await self.request_generation(newsletter_id)
        return await self.run_generation(newsletter_id, generation_id)

    async def cancel(self, newsletter_id: str) -> NewsletterRecord:
        """Cancel a running generation; an in-flight backend result is dropped later."""
        await self.reconciler.cancel(newsletter_id)
        return await self.get_newsletter(newsletter_id)

    async def handle_callback(self, payload: CallbackPayload) -> ReconcileOutcome:
        """Apply a webhook callback (``newsletter_id`` must be set)."""
        return await self.reconciler.apply_callback(
            payload.newsletter_id,
            html_content=payload.html_content,
            text_content=payload.text_content,
            error=payload.error,
        )

    async def update_newsletter(self, newsletter_id: str, update: NewsletterUpdate) -> NewsletterRecord:
        """Edit title, links or notes while not generating."""
        fields = update.model_dump(exclude_none=True)
        if fields and not await self.database.update_newsletter_fields(newsletter_id, **fields):
            await self.get_newsletter(newsletter_id)
            raise GenerationConflictError("Newsletter cannot be edited while generating")
        return await self.get_newsletter(newsletter_id)
