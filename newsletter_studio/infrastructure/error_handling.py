"""Error types and unified error handling utilities for Newsletter Studio."""

import functools
from typing import Any, Callable, List, Optional, Tuple, Type, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError

from newsletter_studio.infrastructure.logging import get_logger
from newsletter_studio.models.state import ErrorSeverity, ProcessingStage, add_error

F = TypeVar('F', bound=Callable[..., Any])
logger = get_logger(__name__)


class NewsletterStudioError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class GenerationValidationError(NewsletterStudioError):
    """Generation inputs are unusable; raised before any state change."""

    def __init__(self, problems: List[str]):
        super().__init__("; ".join(problems))
        self.problems = problems


class GenerationConflictError(NewsletterStudioError):
    """The newsletter is in a status that does not allow the operation."""


class BackendError(NewsletterStudioError):
    """A generation backend failed to produce content."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.timed_out = timed_out


class StorageError(NewsletterStudioError):
    """A record read or write failed."""


class NewsletterNotFoundError(NewsletterStudioError):
    """No newsletter with the given id."""


class ProjectNotFoundError(NewsletterStudioError):
    """No project with the given id."""


class SpreadsheetNotFoundError(NewsletterStudioError):
    """No spreadsheet (or spreadsheet column) with the given id."""


class SpreadsheetImportError(NewsletterStudioError):
    """An uploaded tabular file could not be imported."""


def handle_storage_errors(operation: str) -> Callable[[F], F]:
    """
    Decorator for database operations.

    SQLAlchemy failures are logged and re-raised as StorageError so callers
    deal with a single storage failure type.

    Usage:
        @handle_storage_errors("get_newsletter")
        async def get_newsletter(self, newsletter_id: str) -> Optional[Newsletter]:
            ...
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except SQLAlchemyError as e:
                logger.error("Storage operation failed", operation=operation, error=str(e), exc_info=True)
                raise StorageError(f"Storage error during {operation}: {e}") from e

        return cast(F, wrapper)
    return decorator


def handle_node_errors(
    stage: ProcessingStage,
    severity: ErrorSeverity = ErrorSeverity.CRITICAL,
    error_code: Optional[str] = None,
    reraise: Tuple[Type[BaseException], ...] = (StorageError,),
) -> Callable[[F], F]:
    """
    Decorator for workflow nodes.

    Unexpected exceptions are recorded on the workflow state instead of
    aborting the graph; exception types listed in ``reraise`` propagate.

    Usage:
        @handle_node_errors(ProcessingStage.CONTEXT, error_code="CONTEXT_FAILED")
        async def build_context(state: GenerationState) -> GenerationState:
            ...
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(state, *args, **kwargs):
            try:
                return await func(state, *args, **kwargs)
            except reraise:
                raise
            except Exception as e:
                error_message = f"Error in {func.__name__}: {e}"
                logger.error(error_message, stage=stage.value, exc_info=True)
                add_error(
                    state,
                    stage,
                    error_message,
                    severity,
                    error_code,
                    {"function": func.__name__, "exception_type": type(e).__name__},
                )
                return state

        return cast(F, wrapper)
    return decorator
