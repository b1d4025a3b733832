"""State models for the LangGraph newsletter generation workflow."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, TypedDict

from newsletter_studio.models.context import GenerationContext
from newsletter_studio.models.newsletter import (
    GenerationResult,
    NewsletterRecord,
    ProjectSettings,
    ReconcileOutcome,
)


class ProcessingStage(str, Enum):
    """Processing stages for the newsletter generation workflow."""

    CONTEXT = "context"
    DISPATCH = "dispatch"
    RECONCILE = "reconcile"
    COMPLETED = "completed"
    FAILED = "failed"


class ErrorSeverity(str, Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ProcessingError:
    """Represents an error that occurred during processing."""

    stage: ProcessingStage
    message: str
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    error_code: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return f"[{self.stage.value}] {self.message}"


@dataclass
class GenerationMetadata:
    """Metadata about one generation attempt."""

    generation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    current_stage: ProcessingStage = ProcessingStage.CONTEXT
    processing_time: Dict[ProcessingStage, float] = field(default_factory=dict)
    backend: Optional[str] = None

    @property
    def total_processing_time(self) -> float:
        """Calculate total processing time in seconds."""
        end = self.end_time or datetime.now(timezone.utc)
        return (end - self.start_time).total_seconds()

    def mark_stage_start(self, stage: ProcessingStage) -> None:
        """Mark the start of a processing stage."""
        self.current_stage = stage
        self.processing_time[stage] = datetime.now(timezone.utc).timestamp()

    def mark_stage_end(self, stage: ProcessingStage) -> None:
        """Mark the end of a processing stage."""
        if stage in self.processing_time:
            start_time = self.processing_time[stage]
            self.processing_time[stage] = datetime.now(timezone.utc).timestamp() - start_time


class GenerationState(TypedDict):
    """State flowing through the generation workflow nodes.

    ``workflow_context`` carries the collaborators the nodes need
    (``context_builder``, ``backend_factory``, ``reconciler``).
    """

    # Input
    newsletter: NewsletterRecord
    project: ProjectSettings

    # Processing data
    context: Optional[GenerationContext]
    result: Optional[GenerationResult]
    outcome: Optional[ReconcileOutcome]
    generation_metadata: GenerationMetadata

    # Error handling and monitoring
    errors: List[ProcessingError]

    workflow_context: Dict[str, Any]


def create_initial_state(
    newsletter: NewsletterRecord,
    project: ProjectSettings,
    generation_id: str,
    workflow_context: Dict[str, Any],
) -> GenerationState:
    """Create initial state for one generation attempt."""
    return GenerationState(
        newsletter=newsletter,
        project=project,
        context=None,
        result=None,
        outcome=None,
        generation_metadata=GenerationMetadata(generation_id=generation_id),
        errors=[],
        workflow_context=workflow_context,
    )


def add_error(
    state: GenerationState,
    stage: ProcessingStage,
    message: str,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Add an error to the workflow state."""
    error = ProcessingError(
        stage=stage,
        message=message,
        severity=severity,
        error_code=error_code,
        details=details or {},
    )
    state["errors"].append(error)


def has_critical_errors(state: GenerationState) -> bool:
    """Check if state has any critical errors."""
    return any(
        error.severity == ErrorSeverity.CRITICAL
        for error in state["errors"]
    )
