"""Protocols describing extension points of the engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class AccessPolicy(Protocol):
    """Rights of the caller triggering maintenance jobs."""

    def can_reset_frequencies(self) -> bool:
        """Whether the caller may delete every frequency table row."""
        ...


@dataclass(frozen=True)
class StaticAccessPolicy:
    """Access policy with fixed rights, typically resolved from settings."""

    allow_reset: bool = True

    def can_reset_frequencies(self) -> bool:
        return self.allow_reset


__all__ = ["AccessPolicy", "StaticAccessPolicy"]
