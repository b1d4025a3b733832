"""Data models for Newsletter Studio."""

from .newsletter import (
    CallbackPayload,
    GenerationResult,
    NewsletterRecord,
    NewsletterStatus,
    NewsletterUpdate,
    ProjectSettings,
    ReconcileOutcome,
)
from .spreadsheet import ColumnType, ImportSummary, SpreadsheetDataset
from .context import GenerationContext
from .state import GenerationState, ProcessingError

__all__ = [
    "CallbackPayload",
    "GenerationResult",
    "NewsletterRecord",
    "NewsletterStatus",
    "NewsletterUpdate",
    "ProjectSettings",
    "ReconcileOutcome",
    "ColumnType",
    "ImportSummary",
    "SpreadsheetDataset",
    "GenerationContext",
    "GenerationState",
    "ProcessingError",
]
