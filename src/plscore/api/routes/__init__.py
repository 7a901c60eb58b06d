"""HTTP routers."""

from . import health, maintenance, scoring

__all__ = ["health", "maintenance", "scoring"]
