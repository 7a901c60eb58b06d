"""Core abstractions for configuration and orchestration."""

from .config import ScoringConfig, TransactionBoundary
from .exceptions import ScoringAccessError, ScoringError
from .protocols import AccessPolicy, StaticAccessPolicy

__all__ = [
    "AccessPolicy",
    "ScoringAccessError",
    "ScoringConfig",
    "ScoringError",
    "StaticAccessPolicy",
    "TransactionBoundary",
]
