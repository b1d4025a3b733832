"""API clients for external services."""

from .webhook_client import WebhookClient, WebhookResponse

__all__ = [
    "WebhookClient",
    "WebhookResponse",
]
