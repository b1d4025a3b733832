"""LangGraph workflow agents for newsletter generation."""

from .context import build_generation_context
from .dispatcher import dispatch_generation
from .reconciler import handle_generation_failure, reconcile_result

__all__ = [
    "build_generation_context",
    "dispatch_generation",
    "handle_generation_failure",
    "reconcile_result",
]
