"""HTTP service exports."""

from .app import create_app

__all__ = ["create_app"]
