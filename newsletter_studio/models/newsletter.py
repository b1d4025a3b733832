"""Project and newsletter models for Newsletter Studio."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

CANCELLATION_MESSAGE = "Generation cancelled by user"


class NewsletterStatus(str, Enum):
    """Generation lifecycle of a newsletter."""

    DRAFT = "draft"
    GENERATING = "generating"
    FINAL = "final"
    ERROR = "error"


class NewsletterKind(str, Enum):
    """Voice family of a project's newsletters."""

    PERSONAL = "personal"
    INSTITUTIONAL = "institutional"


class BackendKind(str, Enum):
    """Generation backend selector stored on a project."""

    BUILTIN = "builtin"
    WEBHOOK = "webhook"


class ReconcileOutcome(str, Enum):
    """What the reconciler did with a generation result."""

    COMMITTED = "committed"
    FAILED = "failed"
    DISCARDED = "discarded"
    DEFERRED = "deferred"


@dataclass
class GenerationResult:
    """Normalized output of a generation backend."""

    html_content: Optional[str] = None
    text_content: Optional[str] = None
    error: Optional[str] = None
    deferred: bool = False

    @property
    def succeeded(self) -> bool:
        """Both content fields present and no error."""
        return self.error is None and bool(self.html_content) and bool(self.text_content)

    @classmethod
    def success(cls, html_content: str, text_content: str) -> "GenerationResult":
        return cls(html_content=html_content, text_content=text_content)

    @classmethod
    def failure(cls, error: str) -> "GenerationResult":
        return cls(error=error)

    @classmethod
    def pending(cls) -> "GenerationResult":
        """The backend accepted the job and will answer through the callback."""
        return cls(deferred=True)


class ProjectSettings(BaseModel):
    """Newsletter configuration template read by the generation pipeline."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str
    name: str
    description: Optional[str] = None
    language: str = "en"
    frequency: Optional[str] = None
    author_name: str = ""
    author_bio: Optional[str] = None
    tone: Optional[str] = None
    structure: Optional[str] = None
    newsletter_type: NewsletterKind = NewsletterKind.PERSONAL
    logo_url: Optional[str] = None
    design_guidelines: Optional[str] = None
    html_template: Optional[str] = None
    generation_backend: BackendKind = BackendKind.BUILTIN
    webhook_url: Optional[str] = None

    @property
    def uses_webhook(self) -> bool:
        return self.generation_backend == BackendKind.WEBHOOK.value and bool(self.webhook_url)


class NewsletterRecord(BaseModel):
    """Pydantic view of a persisted newsletter."""

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str
    project_id: str
    title: str
    links_raw: str = ""
    notes: str = ""
    html_content: Optional[str] = None
    text_content: Optional[str] = None
    error_message: Optional[str] = None
    status: NewsletterStatus = NewsletterStatus.DRAFT
    generation_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_generating(self) -> bool:
        return self.status == NewsletterStatus.GENERATING.value


class NewsletterUpdate(BaseModel):
    """User edit of a newsletter's inputs."""

    title: Optional[str] = Field(default=None, min_length=1)
    links_raw: Optional[str] = None
    notes: Optional[str] = None


class CallbackPayload(BaseModel):
    """Body posted by asynchronous webhook backends when they finish."""

    newsletter_id: Optional[str] = None
    html_content: Optional[str] = None
    text_content: Optional[str] = None
    error: Optional[str] = None
