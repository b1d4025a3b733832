"""Infrastructure layer for external integrations and data persistence."""

from .config import ApplicationConfig, load_config
from .logging import setup_logging
from .database import Database, init_database
from .api_clients import WebhookClient
from .error_handling import (
    BackendError,
    GenerationConflictError,
    GenerationValidationError,
    NewsletterStudioError,
    StorageError,
    handle_node_errors,
    handle_storage_errors,
)

__all__ = [
    "ApplicationConfig",
    "load_config",
    "setup_logging",
    "Database",
    "init_database",
    "WebhookClient",
    "BackendError",
    "GenerationConflictError",
    "GenerationValidationError",
    "NewsletterStudioError",
    "StorageError",
    "handle_node_errors",
    "handle_storage_errors",
]
