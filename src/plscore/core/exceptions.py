"""Exceptions surfaced by the scoring engine."""

from __future__ import annotations


class ScoringError(Exception):
    """Base class for lead scoring errors."""


class ScoringAccessError(ScoringError, PermissionError):
    """Raised when the caller lacks the rights needed to run a maintenance job."""


__all__ = ["ScoringAccessError", "ScoringError"]
