"""Business logic services for Newsletter Studio."""

from .backends import BuiltinAIBackend, GenerationBackend, WebhookBackend, select_backend
from .context_builder import ContextBuilder
from .generation import GenerationService
from .reconciler import GenerationReconciler
from .spreadsheet_import import SpreadsheetImporter
from .status_poller import StatusPoller

__all__ = [
    "BuiltinAIBackend",
    "GenerationBackend",
    "WebhookBackend",
    "select_backend",
    "ContextBuilder",
    "GenerationService",
    "GenerationReconciler",
    "SpreadsheetImporter",
    "StatusPoller",
]
