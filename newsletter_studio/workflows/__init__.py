"""LangGraph workflows for Newsletter Studio."""

from .generation import create_generation_workflow, run_generation_workflow

__all__ = [
    "create_generation_workflow",
    "run_generation_workflow",
]
