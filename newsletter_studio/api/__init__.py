"""HTTP API for Newsletter Studio."""

from .app import create_app

__all__ = ["create_app"]
