"""Configuration exports."""

from .loader import load_settings
from .settings import Settings

__all__ = ["Settings", "load_settings"]
