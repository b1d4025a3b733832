"""Generation backends: the builtin AI call and user-supplied webhooks."""

from abc import ABC, abstractmethod
from typing import Optional

from newsletter_studio.infrastructure.api_clients.webhook_client import WebhookClient
from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.error_handling import BackendError
from newsletter_studio.infrastructure.logging import LoggerMixin
from newsletter_studio.models.context import GenerationContext
from newsletter_studio.models.newsletter import BackendKind, GenerationResult, ProjectSettings
from newsletter_studio.services.openai_service import OpenAIService


class GenerationBackend(ABC, LoggerMixin):
    """Turns a generation context into newsletter content."""

    name: str = "backend"

    @abstractmethod
    async def run(self, context: GenerationContext) -> GenerationResult:
        """Produce content for ``context``.

        Failures are returned as ``GenerationResult.failure`` rather than
        raised.
        """


class BuiltinAIBackend(GenerationBackend):
    """Chat model with a forced structured-output call."""

    name = BackendKind.BUILTIN.value

    def __init__(self, openai_service: Optional[OpenAIService] = None):
        self.openai_service = openai_service or OpenAIService()

    async def run(self, context: GenerationContext) -> GenerationResult:
        try:
            content = await self.openai_service.generate_newsletter(
                context.render_system_prompt(),
                context.render_user_prompt(),
            )
        except BackendError as e:
            self.logger.warning("Builtin generation failed", newsletter_id=context.newsletter_id, error=e.message)
            return GenerationResult.failure(e.message)
        return GenerationResult.success(content["html_content"], content["text_content"])


class WebhookBackend(GenerationBackend):
    """POSTs the context to an external endpoint and reads the content back.

    A 202 Accepted reply without content means the endpoint will answer
    later through the callback endpoint.
    """

    name = BackendKind.WEBHOOK.value

    def __init__(
        self,
        url: str,
        client: Optional[WebhookClient] = None,
        callback_url: Optional[str] = None,
    ):
        self.url = url
        self.client = client or WebhookClient()
        self.callback_url = callback_url

    async def run(self, context: GenerationContext) -> GenerationResult:
        payload = context.to_webhook_payload(callback_url=self.callback_url)
        try:
            response = await self.client.post(self.url, payload)
        except BackendError as e:
            return GenerationResult.failure(e.message)

        data = response.data or {}
        html_content = data.get("html_content")
        text_content = data.get("text_content")
        has_content = isinstance(html_content, str) and isinstance(text_content, str) \
            and bool(html_content) and bool(text_content)

        if response.status == 202 and not has_content:
            self.logger.info("Webhook accepted job for asynchronous delivery", newsletter_id=context.newsletter_id)
            return GenerationResult.pending()

        if not response.ok:
            detail = response.text[:200] if response.text else ""
            message = f"Webhook returned HTTP {response.status}"
            return GenerationResult.failure(f"{message}: {detail}" if detail else message)

        if not has_content:
            return GenerationResult.failure("Webhook response is missing html_content or text_content")

        return GenerationResult.success(html_content, text_content)


def select_backend(
    project: ProjectSettings,
    config: Optional[ApplicationConfig] = None,
) -> GenerationBackend:
    """Pick the backend configured on ``project``.

    Webhook only when selected and a URL is set; builtin otherwise.
    """
    config = config or ApplicationConfig()
    if project.uses_webhook:
        return WebhookBackend(
            project.webhook_url,
            client=WebhookClient(timeout=config.webhook_timeout),
            callback_url=config.callback_url,
        )
    return BuiltinAIBackend(OpenAIService(config))
