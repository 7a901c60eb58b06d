"""FastAPI dependency placeholders overridden by the application factory."""

from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy.orm import Session

from plscore.scoring import ScoringEngine


def get_session() -> Iterator[Session]:  # pragma: no cover - injected at runtime
    raise RuntimeError("Session dependency not wired")


def get_engine() -> ScoringEngine:  # pragma: no cover - injected at runtime
    raise RuntimeError("Scoring engine dependency not wired")


__all__ = ["get_engine", "get_session"]
